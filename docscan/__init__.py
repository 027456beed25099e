"""Identity document capture and MRZ validation for Mexican INE/IFE cards and passports."""

__version__ = "0.3.0"
