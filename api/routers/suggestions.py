"""AI suggestion router. Keeps the Gemini API key on the server."""

from fastapi import APIRouter, HTTPException, Depends, status

from api.dependencies import get_current_user, get_suggestion_gateway
from models.user import UserResponse
from models.task import GoalRequest, AnalyzeRequest, SubtaskSuggestion, TaskAnalysis
from services.errors import SuggestionServiceUnavailable
from services.gemini_service import GeminiService


router = APIRouter(prefix="/api/ai", tags=["AI Suggestions"])


@router.post("/subtasks", response_model=list[SubtaskSuggestion])
async def generate_subtasks(
    request: GoalRequest,
    current_user: UserResponse = Depends(get_current_user),
    gateway: GeminiService = Depends(get_suggestion_gateway)
):
    """Break a goal down into suggested tasks (nothing is saved)."""
    try:
        return await gateway.generate_subtasks(request.goal)
    except SuggestionServiceUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/analyze", response_model=TaskAnalysis)
async def analyze_task(
    request: AnalyzeRequest,
    current_user: UserResponse = Depends(get_current_user),
    gateway: GeminiService = Depends(get_suggestion_gateway)
):
    """Suggest a priority and refined description; degrades to the input unchanged."""
    return await gateway.analyze_task(request.description)
