"""
Google Sheets Column Metadata Dump
Pulls the gviz column list of every sheet the app reads or writes, so the
column indices in tmt_shared.sheet_config can be checked against the live
spreadsheets.
"""

import os
import sys
import json
from datetime import datetime
from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "functions"))

from tmt_shared import SheetName, GvizClient, GvizClientConfig, GvizError
from tmt_shared.sheet_config import Column

# Load environment variables from .env file
load_dotenv()

if not os.getenv("GOOGLE_SHEET_ID"):
    raise ValueError("GOOGLE_SHEET_ID environment variable is required. Copy local.settings.example.json values into .env.")

# Widest index the app touches per sheet
EXPECTED_WIDTH = {
    SheetName.PRODUCTION: Column.PRODUCTION.PRODUCTION_DONE + 1,
    SheetName.ACTUAL_PRODUCTION: Column.ACTUAL_PRODUCTION.WIDTH,
    SheetName.COMPOSITION: Column.COMPOSITION.WIDTH,
    SheetName.DELEGATION: Column.DELEGATION.ACTUAL + 1,
    SheetName.DELEGATION_DONE: Column.DELEGATION_DONE.IMAGE_URL + 1,
}


def process_sheet(client, sheet):
    """Fetch the column list of one sheet."""
    print(f"  - Processing: {sheet.value}")
    try:
        columns = client.fetch_columns(sheet.value)
        rows = client.fetch_rows(sheet.value)
    except GvizError as e:
        print(f"    ERROR: {e}")
        return {"sheet_name": sheet.value, "error": str(e)}

    info = {
        "sheet_name": sheet.value,
        "spreadsheet_id": client.spreadsheet_for(sheet.value),
        "row_count": len(rows),
        "columns": columns,
    }
    expected = EXPECTED_WIDTH.get(sheet)
    if expected and len(columns) < expected:
        info["warning"] = f"expected at least {expected} columns, found {len(columns)}"
        print(f"    WARNING: {info['warning']}")
    return info


def main():
    print("=" * 60)
    print("Google Sheets Column Metadata Dump")
    print(f"Timestamp: {datetime.now().isoformat()}")
    print("=" * 60)

    client = GvizClient(GvizClientConfig.from_environment())
    metadata = {
        "fetch_timestamp": datetime.now().isoformat(),
        "sheets": [process_sheet(client, sheet) for sheet in SheetName],
    }
    client.close()

    output_file = "sheet_column_metadata.json"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(metadata, f, indent=2, ensure_ascii=False)
    print(f"\nMetadata saved to: {output_file}")

    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    for sheet in metadata["sheets"]:
        if "error" in sheet:
            print(f"  x {sheet['sheet_name']} (error)")
            continue
        print(f"  - {sheet['sheet_name']} ({len(sheet['columns'])} columns, {sheet['row_count']} rows)")


if __name__ == "__main__":
    main()
