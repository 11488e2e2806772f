from fastapi import APIRouter, Body, Query

import app_service as svc


router = APIRouter(prefix="/api")


@router.get("/version")
def get_version():
    return svc.get_version()


@router.get("/projects")
def get_projects():
    return svc.get_projects()


@router.get("/cache-status")
def get_cache_status():
    return svc.get_cache_status()


@router.get("/projects/{project}/catalog")
def get_catalog(project: str):
    return svc.get_catalog(project)


@router.get("/projects/{project}/nodes/{node}/historical")
def get_historical(project: str, node: str):
    return svc.get_historical(project, node)


@router.get("/projects/{project}/nodes/{node}/annual")
def get_annual(project: str, node: str, year: str = Query(default=None)):
    return svc.get_annual(project, node, year=year)


@router.get("/projects/{project}/nodes/{node}/monthly/{month_key}")
def get_monthly(project: str, node: str, month_key: str):
    return svc.get_monthly(project, node, month_key)


@router.get("/projects/{project}/nodes/{node}/daily/{day}")
def get_daily(project: str, node: str, day: str):
    return svc.get_daily(project, node, day)


@router.get("/state")
async def get_state(wait: bool = Query(default=False)):
    return await svc.get_state(wait=wait)


@router.post("/select")
async def select(payload: dict = Body(default=None), wait: bool = Query(default=False)):
    return await svc.select(payload, wait=wait)


@router.post("/drill")
async def drill(payload: dict = Body(default=None), wait: bool = Query(default=False)):
    return await svc.drill(payload, wait=wait)


@router.post("/refresh")
async def refresh(wait: bool = Query(default=False), all_projects: bool = Query(default=False)):
    return await svc.refresh(wait=wait, all_projects=all_projects)
