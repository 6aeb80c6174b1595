from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import api_board, register


@pytest.mark.anyio
async def test_project_crud_and_favorites(client: AsyncClient) -> None:
  await register(client, "owner@example.com", "Owner")
  board = await api_board(client)
  pid = board["projectId"]
  assert [s["name"] for s in board["statuses"]] == ["Backlog", "In Progress", "Done"]

  res = await client.patch(f"/projects/{pid}", json={"name": "Renamed", "description": "About"})
  assert res.status_code == 200 and res.json()["name"] == "Renamed"

  res = await client.post(f"/projects/{pid}/archive")
  assert res.json()["archived"] is True
  res = await client.post(f"/projects/{pid}/favorite")
  assert res.json() == {"ok": True, "favorite": True}

  listed = (await client.get("/projects", params={"teamId": board["teamId"]})).json()
  assert [(p["name"], p["favorite"], p["archived"]) for p in listed] == [("Renamed", True, True)]

  assert (await client.delete(f"/projects/{pid}")).status_code == 200
  assert (await client.get("/projects")).json() == []
  res = await client.get(f"/projects/{pid}/statuses")
  assert res.status_code == 404
  assert res.json()["detail"]["code"] == "not_found"


@pytest.mark.anyio
async def test_statuses_create_and_reorder(client: AsyncClient) -> None:
  await register(client, "owner@example.com", "Owner")
  board = await api_board(client)
  pid = board["projectId"]

  res = await client.post(f"/projects/{pid}/statuses", json={"name": "Review", "color": "#abcdef", "wipLimit": 3})
  assert res.status_code == 201, res.text
  review = res.json()
  assert (review["kind"], review["position"], review["wipLimit"]) == ("CUSTOM", 3, 3)
  assert (await client.post(f"/projects/{pid}/statuses", json={"name": "Bad", "color": "blue"})).status_code == 422

  order = [{"statusId": review["id"], "position": 0}] + [
    {"statusId": s["id"], "position": idx + 1} for idx, s in enumerate(board["statuses"])
  ]
  res = await client.patch(f"/projects/{pid}/statuses", json={"order": order})
  assert res.status_code == 200, res.text
  assert [s["name"] for s in res.json()] == ["Review", "Backlog", "In Progress", "Done"]

  board_view = (await client.get(f"/projects/{pid}/board")).json()
  assert [c["status"]["name"] for c in board_view["columns"]] == ["Review", "Backlog", "In Progress", "Done"]


@pytest.mark.anyio
async def test_labels(client: AsyncClient) -> None:
  await register(client, "owner@example.com", "Owner")
  board = await api_board(client)
  pid = board["projectId"]

  res = await client.post(f"/projects/{pid}/labels", json={"name": "bug", "color": "#ff0000"})
  assert res.status_code == 201
  assert (await client.post(f"/projects/{pid}/labels", json={"name": "", "color": "#ff0000"})).status_code == 422
  labels = (await client.get(f"/projects/{pid}/labels")).json()
  assert [(l["name"], l["color"]) for l in labels] == [("bug", "#ff0000")]


@pytest.mark.anyio
async def test_outsider_cannot_see_project(client: AsyncClient) -> None:
  await register(client, "owner@example.com", "Owner")
  board = await api_board(client)
  await register(client, "outsider@example.com", "Outsider")

  assert (await client.get(f"/projects/{board['projectId']}/board")).status_code == 404
  assert (await client.get("/projects")).json() == []
  res = await client.post("/projects", json={"teamId": board["teamId"], "name": "Sneaky"})
  assert res.status_code == 404
