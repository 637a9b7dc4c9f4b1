from typing import Optional

from pydantic import BaseModel


class ClientRecord(BaseModel):
    """
    A client row from the registry spreadsheet.
    Expected column order: cnpj, company name, address, city, zip, state, email.
    """
    cnpj: str                          # formatted, e.g. "91.338.558/0001-37"
    name: str = ""
    address: str = ""
    city: str = ""
    zip: str = ""
    state: str = ""
    email: Optional[str] = None
