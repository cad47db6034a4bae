"""Site form handling — request models, OTPs, and spreadsheet rows."""

from src.forms.otp import OtpStore
from src.forms.sheets import SheetsClient, sheet_timestamp

__all__ = [
    "OtpStore",
    "SheetsClient",
    "sheet_timestamp",
]
