"""Utility functions for clubledger."""

from clubledger.utils.date_parser import parse_date
from clubledger.utils.amount_parser import parse_amount
from clubledger.utils.bank_csv import read_bank_csv

__all__ = ["parse_date", "parse_amount", "read_bank_csv"]
