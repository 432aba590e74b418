from typing import Optional

from stockdesk.common.schemas import CamelModel


class FolderSelection(CamelModel):
    path: Optional[str] = None
