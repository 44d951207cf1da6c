"""Services for FamilyHub medications."""
