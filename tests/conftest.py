import pytest

from core.data import StaticRecordSource
from core.records import LineItem


@pytest.fixture
def sample_records():
    return [
        {
            "Project ID": "123456789012",
            "Service Usage Details": "BoxUsage:t3.micro",
            "Product Code": "AmazonEC2",
            "Line-item Description": "t3.micro on-demand",
            "Cost": "10.0",
            "Usage Quantity": "24",
            "Period Start": "2024-01-05",
            "Period End": "2024-01-06",
            "Payment Method": "AWS",
        },
        {
            "Project ID": "123456789012",
            "Product Code": "AmazonS3",
            "Cost": 5.5,
            "Period Start": "2024-01-20",
            "Period End": "2024-01-21",
        },
        {
            "Project ID": "123456789012",
            "Product Code": "AmazonEC2",
            "Cost": "7.25 USD",
            "Period Start": "2024-02-10",
            "Period End": "2024-02-11",
        },
        {
            "Product Code": "AmazonRDS",
            "Cost": "3",
            "Period Start": "2024-03-01",
            "Period End": "2024-03-31",
        },
        {
            "Cost": "n/a",
            "Period Start": "2024-04-15",
            "Period End": "2024-04-16",
        },
    ]


@pytest.fixture
def sample_items(sample_records):
    return [LineItem.from_mapping(r) for r in sample_records]


@pytest.fixture
def sample_source(sample_records):
    return StaticRecordSource(sample_records, aggregate={"source": "fixture"})
