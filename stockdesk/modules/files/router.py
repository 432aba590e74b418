"""
Files Router
"""
from fastapi import APIRouter

from stockdesk.modules.files import service
from stockdesk.modules.files.schemas import FolderSelection

router = APIRouter(prefix="/files", tags=["Files"])


@router.post("/pick-folder", response_model=FolderSelection)
async def pick_folder():
    """
    Open the native directory chooser on the host running the API.
    ``path`` is null when the user cancels.
    """
    return FolderSelection(path=await service.pick_folder())
