"""VCT esports statistics ingestion: vlrggapi feeds plus vlr.gg match-page scraping."""
