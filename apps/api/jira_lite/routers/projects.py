from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.deps import get_current_user, get_db
from jira_lite.issues.service import board_columns
from jira_lite.models import Project, ProjectLabel, Status as BoardStatus, User
from jira_lite.projects import labels as label_service
from jira_lite.projects import service as projects
from jira_lite.projects import statuses as status_service
from jira_lite.routers.issues import issue_out
from jira_lite.schemas import (
  BoardColumnOut,
  BoardOut,
  LabelCreateIn,
  LabelOut,
  ProjectCreateIn,
  ProjectOut,
  ProjectUpdateIn,
  StatusCreateIn,
  StatusOut,
  StatusReorderIn,
  StatusWipIn,
)

router = APIRouter(tags=["projects"])


def _project_out(p: Project, favorite: bool = False) -> ProjectOut:
  return ProjectOut(
    id=p.id,
    teamId=p.team_id,
    name=p.name,
    description=p.description,
    archived=p.archived_at is not None,
    favorite=favorite,
    createdAt=p.created_at,
    updatedAt=p.updated_at,
  )


def status_out(s: BoardStatus) -> StatusOut:
  return StatusOut(id=s.id, projectId=s.project_id, name=s.name, color=s.color, position=s.position, kind=s.kind, wipLimit=s.wip_limit)


def label_out(l: ProjectLabel) -> LabelOut:
  return LabelOut(id=l.id, projectId=l.project_id, name=l.name, color=l.color)


@router.post("/projects", response_model=ProjectOut, status_code=201)
async def create_project(payload: ProjectCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  p = await projects.create_project(db, user.id, payload.teamId, payload.name.strip(), payload.description)
  await db.commit()
  return _project_out(p)


@router.get("/projects", response_model=list[ProjectOut])
async def list_projects(
  teamId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ProjectOut]:
  return [_project_out(p, fav) for p, fav in await projects.list_projects(db, user.id, teamId)]


@router.patch("/projects/{project_id}", response_model=ProjectOut)
async def update_project(
  project_id: str,
  payload: ProjectUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ProjectOut:
  p = await projects.update_project(db, project_id, user.id, name=payload.name.strip(), description=payload.description)
  await db.commit()
  return _project_out(p)


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await projects.soft_delete_project(db, project_id, user.id)
  await db.commit()
  return {"ok": True}


@router.post("/projects/{project_id}/archive", response_model=ProjectOut)
async def toggle_archive(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  p = await projects.toggle_archive(db, project_id, user.id)
  await db.commit()
  return _project_out(p)


@router.post("/projects/{project_id}/favorite")
async def toggle_favorite(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  favorite = await projects.toggle_favorite(db, project_id, user.id)
  await db.commit()
  return {"ok": True, "favorite": favorite}


@router.get("/projects/{project_id}/board", response_model=BoardOut)
async def get_board(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  columns = await board_columns(db, project_id, user.id)
  return BoardOut(
    projectId=project_id,
    columns=[BoardColumnOut(status=status_out(s), issues=[issue_out(b) for b in bundles]) for s, bundles in columns],
  )


@router.get("/projects/{project_id}/statuses", response_model=list[StatusOut])
async def list_statuses(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[StatusOut]:
  return [status_out(s) for s in await status_service.list_statuses(db, project_id, user.id)]


@router.post("/projects/{project_id}/statuses", response_model=StatusOut, status_code=201)
async def create_status(
  project_id: str,
  payload: StatusCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> StatusOut:
  s = await status_service.create_status(db, project_id, user.id, payload.name.strip(), payload.color, payload.wipLimit)
  await db.commit()
  return status_out(s)


@router.patch("/projects/{project_id}/statuses", response_model=list[StatusOut])
async def reorder_statuses(
  project_id: str,
  payload: StatusReorderIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[StatusOut]:
  await status_service.reorder_statuses(db, project_id, user.id, [(x.statusId, x.position) for x in payload.order])
  await db.commit()
  return [status_out(s) for s in await status_service.list_statuses(db, project_id, user.id)]


@router.patch("/projects/{project_id}/statuses/{status_id}", response_model=StatusOut)
async def update_status_wip(
  project_id: str,
  status_id: str,
  payload: StatusWipIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> StatusOut:
  s = await status_service.update_status_wip(db, project_id, status_id, user.id, payload.wipLimit)
  await db.commit()
  return status_out(s)


@router.get("/projects/{project_id}/labels", response_model=list[LabelOut])
async def list_labels(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[LabelOut]:
  return [label_out(l) for l in await label_service.list_labels(db, project_id, user.id)]


@router.post("/projects/{project_id}/labels", response_model=LabelOut, status_code=201)
async def create_label(
  project_id: str,
  payload: LabelCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> LabelOut:
  l = await label_service.create_label(db, project_id, user.id, payload.name.strip(), payload.color)
  await db.commit()
  return label_out(l)
