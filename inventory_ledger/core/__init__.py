from inventory_ledger.core.config import settings
from inventory_ledger.core.database import AsyncSessionLocal, Base, engine
