"""Shared fixtures: a small project tree with sources and translation stores."""

import json
from pathlib import Path

import pytest
import requests

from i18n_collector.config import parse_config

CONTROLLER = """<?php

class TestController extends Controller
{
    public function index()
    {
        $message = __("user.login.success");
        $logout = trans('user.logout');
        $title = __("this is a title");
        $missing = __("user.not.there");

        return $message;
    }
}
"""

PROFILE_VIEW = """<div>
    <h1>{{ __("nested.user.profile.name") }}</h1>
    <p>@lang("Text with space")</p>
</div>
"""

MODULE_CONTROLLER = """<?php

return trans("user.logout");
"""


def write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=4), encoding="utf-8")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "TestController.php").write_text(CONTROLLER, encoding="utf-8")

    views = tmp_path / "Modules" / "User" / "Resources" / "views"
    views.mkdir(parents=True)
    (views / "profile.blade.php").write_text(PROFILE_VIEW, encoding="utf-8")
    http = tmp_path / "Modules" / "User" / "Http"
    http.mkdir(parents=True)
    (http / "UserController.php").write_text(MODULE_CONTROLLER, encoding="utf-8")

    lang = tmp_path / "lang"
    write_json(lang / "en.json", {
        "user.login.success": "Login successful",
        "user.logout": "Logout",
        "count": 3,
    })
    write_json(lang / "en" / "nested.json", {"user": {"profile": {"name": "Name"}}})
    write_json(lang / "zh_CN.json", {"user.login.success": "登录成功"})
    return tmp_path


@pytest.fixture
def config(project: Path):
    return parse_config({
        "collector": {
            "base_path": str(project),
            "scan_paths": ["app"],
            "lang_path": "lang",
            "default_language": "en",
            "supported_languages": {"en": "English", "zh_CN": "Simplified Chinese"},
        },
        "modules": {
            "enabled": True,
            "path": "Modules",
            "scan_subpaths": ["Http", "Resources/views"],
        },
        "cache": {"enabled": False},
    })


def build_response(body, status: int = 200) -> requests.Response:
    """Build a real requests.Response with the given JSON (or raw text) body."""
    response = requests.Response()
    response.status_code = status
    if isinstance(body, (bytes, str)):
        content = body.encode("utf-8") if isinstance(body, str) else body
    else:
        content = json.dumps(body).encode("utf-8")
    response._content = content
    response.encoding = "utf-8"
    response.url = "https://api.test/"
    return response


@pytest.fixture
def make_response():
    return build_response
