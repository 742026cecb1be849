# Importing every model registers it with Base.metadata (Alembic, create_all)
# and lets string-based relationships resolve.
from allerscan.models.user import User
from allerscan.models.family import Allergy, Family, FamilyMember
from allerscan.models.scan import ScanHistory

__all__ = ["User", "Family", "FamilyMember", "Allergy", "ScanHistory"]
