"""
Record store client (Salesforce REST API).
"""

from pricing_engine.salesforce.client import (
    DataApi,
    QueryPage,
    SalesforceDataApi,
    build_data_api,
)

__all__ = [
    "DataApi",
    "QueryPage",
    "SalesforceDataApi",
    "build_data_api",
]
