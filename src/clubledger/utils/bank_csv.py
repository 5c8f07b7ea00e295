"""Reading bank statement CSV exports into incoming records."""

import csv
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from clubledger.domain.entities import IncomingRecord
from clubledger.utils.amount_parser import parse_amount
from clubledger.utils.date_parser import parse_optional_date


@dataclass(frozen=True)
class CSVLayout:
    """Column names and number/date conventions of one export format."""

    name: str
    columns: dict[str, str]
    decimal_separator: str = "."
    dayfirst: bool = False


GENERIC_LAYOUT = CSVLayout(
    name="generic",
    columns={
        "sequence_number": "sequence_number",
        "execution_date": "execution_date",
        "value_date": "value_date",
        "amount": "amount",
        "counterparty_name": "counterparty_name",
        "counterparty_iban": "counterparty_iban",
        "communication": "communication",
        "account_number": "account_number",
    },
)

BNP_LAYOUT = CSVLayout(
    name="bnp",
    columns={
        "Nº de séquence": "sequence_number",
        "Date d'exécution": "execution_date",
        "Date valeur": "value_date",
        "Montant": "amount",
        "Numéro de compte": "account_number",
        "Contrepartie": "counterparty_iban",
        "Nom de la contrepartie": "counterparty_name",
        "Communication": "communication",
        "Détails": "details",
    },
    decimal_separator=",",
    dayfirst=True,
)

LAYOUTS = {layout.name: layout for layout in (GENERIC_LAYOUT, BNP_LAYOUT)}

CARD_PAYMENT_MERCHANT = re.compile(
    r"NUMERO\s+\d{4}\s+\d{2}[X\d]{2}\s+[X\d]{4}\s+\d{4}\s+(.+?)\s+\d{2}/\d{2}/\d{4}",
    re.IGNORECASE,
)


def detect_layout(headers: list[str]) -> CSVLayout:
    """Pick the layout matching a header row (generic when unrecognised)."""
    cleaned = {h.strip() for h in headers}
    if "Nº de séquence" in cleaned or "Date d'exécution" in cleaned:
        return BNP_LAYOUT
    return GENERIC_LAYOUT


def extract_merchant_name(details: Optional[str]) -> str:
    """Merchant name from the details of a debit card payment, or ""."""
    if not details:
        return ""
    match = CARD_PAYMENT_MERCHANT.search(details)
    if match is None:
        return ""
    return " ".join(match.group(1).split())


def read_bank_csv(
    csv_file_path: str, layout_name: Optional[str] = None
) -> tuple[list[IncomingRecord], list[str]]:
    """Read a bank CSV export.

    Args:
        csv_file_path: Path to CSV file (";" or "," delimited)
        layout_name: Force a layout ("generic" or "bnp"); detected when None

    Returns:
        Tuple of (records in file order, row error messages)

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If the layout is unknown or required columns are missing
    """
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    records: list[IncomingRecord] = []
    errors: list[str] = []

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(2048)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=";,").delimiter
        except csv.Error:
            delimiter = ";"

        reader = csv.DictReader(f, delimiter=delimiter)
        headers = reader.fieldnames
        if headers is None:
            raise ValueError("CSV file has no columns")

        if layout_name is None:
            layout = detect_layout(headers)
        elif layout_name in LAYOUTS:
            layout = LAYOUTS[layout_name]
        else:
            raise ValueError(f"Unknown CSV layout '{layout_name}'. Supported: {', '.join(LAYOUTS)}")

        column_map = {col.strip(): field for col, field in layout.columns.items()}
        present = {h.strip() for h in headers}
        required = {col for col, field in column_map.items() if field in {"amount", "execution_date"}}
        missing = sorted(required - present)
        if missing:
            raise ValueError(f"CSV file missing required columns: {', '.join(missing)}")

        for row_num, row in enumerate(reader, start=2):
            values = {}
            for header, raw in row.items():
                if header is None:
                    continue
                field = column_map.get(header.strip())
                if field is not None:
                    values[field] = raw.strip() if raw else ""

            if not any(values.values()):
                continue

            try:
                amount = parse_amount(values.get("amount", ""), layout.decimal_separator)
                execution_date = parse_optional_date(values.get("execution_date"), layout.dayfirst)
                value_date = parse_optional_date(values.get("value_date"), layout.dayfirst)
            except ValueError as e:
                errors.append(f"Row {row_num}: {e}")
                continue

            counterparty = values.get("counterparty_name", "")
            if not counterparty:
                counterparty = extract_merchant_name(values.get("details"))

            records.append(
                IncomingRecord(
                    sequence_number=values.get("sequence_number", ""),
                    execution_date=execution_date,
                    amount=amount,
                    counterparty_name=counterparty,
                    communication=values.get("communication", ""),
                    value_date=value_date,
                    counterparty_iban=values.get("counterparty_iban") or None,
                    account_number=values.get("account_number") or None,
                )
            )

    return records, errors
