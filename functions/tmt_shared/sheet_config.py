"""
Centralized Sheet Configuration
===============================

This module defines all sheet names, column positions, and business constants.
It serves as the **single source of truth** for the Google Sheets layout.

Column positions are zero-based indices into a gviz row (``row.c[n]``) and
into the positional ``rowData`` arrays sent to the Apps Script proxy. They are
effectively the on-disk schema: changing one here changes what every endpoint
reads and writes.

Usage
-----
Always use these constants instead of hardcoding:

    >>> from tmt_shared import SheetName, Column
    >>>
    >>> # Good - use constants
    >>> rows = client.fetch_rows(SheetName.PRODUCTION)
    >>> heat_no = rows[0][Column.PRODUCTION.HEAT_NO]
    >>>
    >>> # Bad - magic numbers (don't do this!)
    >>> heat_no = rows[0][1]

Module Contents
---------------
SheetName : Enum
    All sheet (tab) names read or written by the app
Column : class
    Zero-based column indices organised by sheet
Sentinel columns
    ``(status, completion, owner)`` triples used by the row filters
Business constants
    Interest rate, selling price divisor, row limits, batch sizes
"""

from enum import Enum


class SheetName(str, Enum):
    """
    Canonical sheet (tab) names.
    Use these constants instead of hardcoding strings.
    """
    # Main TMT spreadsheet
    LOGIN = "Login"
    PRODUCTION = "PRODUCTION"
    ACTUAL_PRODUCTION = "Actual Production"
    MATERIALS_MASTER = "KYC of stock"
    COMPOSITION = "Composition Response"
    DROP_DOWN = "Drop-Down"

    # Delegation spreadsheet
    DELEGATION = "DELEGATION"
    DELEGATION_DONE = "DELEGATION DONE"
    CHECKLIST = "Checklist"
    MASTER = "master"
    WORKING_DAYS = "Working Day Calendar"
    DATA = "DATA"
    SALES = "SALES"
    WAREHOUSE = "WAREHOUSE"


class Column:
    """
    Zero-based column indices organized by sheet.

    Usage:
        >>> Column.PRODUCTION.BRAND
        3
    """

    class LOGIN:
        """Login sheet: A username, B password, C user type, D display name."""
        USERNAME = 0
        PASSWORD = 1
        USER_TYPE = 2
        DISPLAY_NAME = 3

    class PRODUCTION:
        """PRODUCTION sheet (planning rows)."""
        TIMESTAMP = 0
        HEAT_NO = 1
        PERSON = 2
        BRAND = 3              # D - owner column
        SUPERVISOR = 4
        DATE_OF_PRODUCTION = 5
        REMARKS = 6
        FIRST_SIZE = 7         # H; sizes at 7 + 2i, quantities at 8 + 2i
        PLANNING_QTY = 27      # AB
        PRODUCTION_QTY = 29    # AD
        PENDING_QTY = 30       # AE
        KITTING_STATUS = 32    # AG
        KITTING_DONE = 33      # AH
        PRODUCTION_STATUS = 35 # AJ
        PRODUCTION_DONE = 36   # AK
        PRODUCTION_DONE_LETTER = "AK"

    class ACTUAL_PRODUCTION:
        """Actual Production sheet."""
        TIMESTAMP = 0
        HEAT_NO = 1
        BRAND = 2              # C - owner column
        TIME_RANGE = 3
        HOURS = 4
        BREAKDOWN_TIME = 5
        BREAKDOWN_GAP = 6
        FIRST_ITEM = 7         # size, piece qty, MT qty at 7 + 3i
        REMARKS = 37
        WIDTH = 38

    class MATERIALS_MASTER:
        """KYC of stock: A material, B price, C yield, D fem."""
        MATERIAL = 0
        PRICE = 1
        YIELD = 2
        FEM = 3

    class DROP_DOWN:
        """Drop-Down sheet: A brand names."""
        BRAND = 0

    class COMPOSITION:
        """Composition Response sheet."""
        COMPOSITION_NO = 0
        DATE = 1
        HEAT_NO = 2
        PRODUCT_NAME = 3       # D - owner column
        COSTING = 4
        MANUFACTURING_COST = 5
        INTEREST_DAYS = 6
        INTEREST_COST = 7
        TRANSPORTING = 8
        SELLING_PRICE = 9
        VARIABLE_COST = 10
        GP_PERCENTAGE = 11
        YIELD_TOTAL = 12
        FEM_TOTAL = 13
        FIRST_MATERIAL = 14
        FIRST_PERCENT = 29
        WIDTH = 44

    class DELEGATION:
        """DELEGATION sheet (one-time delegated tasks)."""
        TIMESTAMP = 0
        TASK_ID = 1
        DEPARTMENT = 2
        GIVEN_BY = 3
        DOER = 4               # E - owner column
        TITLE = 5
        DESCRIPTION = 6
        DUE_DATE = 7
        FREQUENCY = 8
        REMINDERS = 9
        REQUIRE_ATTACHMENT = 10  # K - "YES" means an attachment is required
        PLANNED = 11           # L - status sentinel
        ACTUAL = 12            # M - completion sentinel

    class DELEGATION_DONE:
        """DELEGATION DONE sheet; the first ten cells are left blank."""
        LEADING_BLANKS = 10
        COMPLETED_ON = 10      # K
        TASK_ID = 11           # L
        STATUS = 12            # M
        NEXT_TARGET_DATE = 13  # N
        REMARKS = 14           # O
        IMAGE_URL = 15         # P

    class DATA(DELEGATION):
        """DATA sheet: DELEGATION layout plus the uploaded file URL in P."""
        FILE_URL = 15          # P

    class ADMIN_DATA:
        """SALES and WAREHOUSE sheets."""
        ASSIGNED_TO = 4        # E - owner column
        DATE = 7               # H - sort key on SALES
        REQUIRE_ATTACHMENT = 10  # K
        PLANNED = 11           # L - status sentinel
        ACTUAL = 12            # M - completion sentinel
        FIRST_VISIBLE = 1      # B
        LAST_VISIBLE = 10      # K

    class MASTER:
        """master sheet: A departments, B given by, C doers."""
        DEPARTMENT = 0
        GIVEN_BY = 1
        DOER = 2

    class WORKING_DAYS:
        """Working Day Calendar: A working date."""
        DATE = 0


# ============== Sentinel Columns ==============
# (status column, completion column, owner column)

KITTING_SENTINELS = (
    Column.PRODUCTION.KITTING_STATUS,
    Column.PRODUCTION.KITTING_DONE,
    Column.PRODUCTION.BRAND,
)

PRODUCTION_SENTINELS = (
    Column.PRODUCTION.PRODUCTION_STATUS,
    Column.PRODUCTION.PRODUCTION_DONE,
    Column.PRODUCTION.BRAND,
)

DELEGATION_SENTINELS = (
    Column.DELEGATION.PLANNED,
    Column.DELEGATION.ACTUAL,
    Column.DELEGATION.DOER,
)


DATA_SENTINELS = (
    Column.DATA.PLANNED,
    Column.DATA.ACTUAL,
    Column.DATA.DOER,
)

ADMIN_DATA_SENTINELS = (
    Column.ADMIN_DATA.PLANNED,
    Column.ADMIN_DATA.ACTUAL,
    Column.ADMIN_DATA.ASSIGNED_TO,
)


# ============== Business Constants ==============

INTEREST_RATE = 0.18            # annual, simple daily interest
DAYS_PER_YEAR = 365
SELLING_PRICE_DIVISOR = 0.75    # 25% markup-on-cost assumption

MAX_SIZES = 10
MAX_PRODUCTION_ITEMS = 10
MAX_MATERIALS = 15

TASK_BATCH_SIZE = 20
TASK_HORIZON_YEARS = 2
MAX_WORKING_DAY_ATTEMPTS = 100

COMPOSITION_PREFIX = "CN"
COMPOSITION_PADDING = 3
TASK_PREFIX = "TI"
TASK_PADDING = 3

FULL_ADMIN_USERNAME = "admin"
ALL_DEPARTMENTS = "all"
ATTACHMENT_REQUIRED = "YES"

# Apps Script header ids: B..K may be edited on DATA rows, M and P are set on completion
DATA_EDITABLE_COLUMNS = tuple(f"col{letter}" for letter in "BCDEFGHIJK")
DATA_COMPLETED_COLUMN = "colM"
DATA_FILE_URL_COLUMN = "colP"

DRIVE_FOLDER_URL = "https://drive.google.com/drive/folders/{folder_id}"
