from __future__ import annotations
from types import MappingProxyType
from typing import Any, Dict, Mapping

from fastapi import Depends, HTTPException

from .routers.auth import User, get_current_user


ALL_TEMPLATES = ("lesson_plan", "unit_plan", "quiz", "project", "gagne_lesson_plan", "debate", "blank")

ROLE_PERMISSIONS: Mapping[str, Dict[str, Dict[str, Any]]] = MappingProxyType({
	"admin": {
		"templates": {"read": True, "access": ALL_TEMPLATES},
		"content": {"create": True, "read": True, "read_all": True, "delete": True, "restore": True},
		"ai": {"generate": True, "regenerate": True, "daily_limit": 1000},
	},
	"teacher": {
		"templates": {"read": True, "access": ALL_TEMPLATES},
		"content": {"create": True, "read": True, "read_all": False, "delete": True, "restore": True},
		"ai": {"generate": True, "regenerate": True, "daily_limit": 50},
	},
	"student": {
		"templates": {"read": True, "access": ("lesson_plan", "quiz")},
		"content": {"create": False, "read": True, "read_all": False, "delete": False, "restore": False},
		"ai": {"generate": False, "regenerate": False, "daily_limit": 0},
	},
})


def has_permission(role: str, resource: str, action: str) -> bool:
	return bool(ROLE_PERMISSIONS.get(role, {}).get(resource, {}).get(action, False))


def daily_ai_limit(role: str) -> int:
	return int(ROLE_PERMISSIONS.get(role, {}).get("ai", {}).get("daily_limit", 0))


def can_use_template(role: str, template_id: str) -> bool:
	return template_id in ROLE_PERMISSIONS.get(role, {}).get("templates", {}).get("access", ())


def require_permission(resource: str, action: str):
	def _checker(user: User = Depends(get_current_user)) -> User:
		if not has_permission(user.role, resource, action):
			raise HTTPException(status_code=403, detail=f"Permission denied: {resource}.{action}")
		return user
	return _checker
