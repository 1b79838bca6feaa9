from fastapi import APIRouter
import shutil

from api.src.services.runs import list_runs

router = APIRouter(tags=["health"])

TOOLS = ("git", "terraform", "tofu", "tflint", "checkov", "tfsec", "terraform-docs", "renovate")

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "tfpipe-api"}

@router.get("/health/tools")
async def tools_health_check():
    """Report which external tools are on PATH. git is required for webhook runs."""
    tools = {tool: shutil.which(tool) is not None for tool in TOOLS}
    return {
        "status": "healthy" if tools["git"] else "degraded",
        "tools": tools,
    }

@router.get("/health/runs")
async def runs_health_check():
    running = list_runs(limit=1000, status="running")
    return {"status": "healthy", "running": len(running)}
