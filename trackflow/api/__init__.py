# FastAPI surface for ingestion, sites and analytics queries.
