"""Service layer: news aggregation pipeline and query service"""
