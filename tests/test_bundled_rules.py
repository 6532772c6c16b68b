"""Bundled rule documents against small deliberately non-compliant projects."""

from __future__ import annotations

import json
from pathlib import Path

from standards_audit.engine import AuditConfig, audit
from tests.helpers_projects import make_laravel_project, write_file

BAD_CONTROLLER = """<?php

namespace App\\Http\\Controllers;

use App\\Models\\User;

class OrdersController extends Controller
{
    // generic name
    public function getData()
    {
        return User::all();
    }

    public function process($data)
    {
        return $data;
    }
}
"""

BAD_WIDGET = """import 'package:flutter/material.dart';

// static content
class ProfileBadge extends StatefulWidget {
  ProfileBadge({Key? key}) : super(key: key);

  @override
  State<ProfileBadge> createState() => _ProfileBadgeState();
}

class _ProfileBadgeState extends State<ProfileBadge> {
  @override
  Widget build(BuildContext context) {
    return Container(
      color: Color(0xFF123456),
      child: Text('Hi', style: TextStyle(fontSize: 16)),
    );
  }
}
"""


def _fired(report) -> dict[str, list[int | None]]:
    fired: dict[str, list[int | None]] = {}
    for violation in report.violations:
        fired.setdefault(violation.rule_id, []).append(violation.line)
    return fired


def test_laravel_controller_violations(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)
    write_file(repo, "app/Http/Controllers/OrdersController.php", BAD_CONTROLLER)
    write_file(
        repo,
        "app/Http/Controllers/OrderController.php",
        "<?php\n\nclass OrderController extends Controller\n{\n}\n",
    )

    report = audit(repo, AuditConfig(mode="full"))
    fired = _fired(report)
    assert fired["laravel-controller-singular"] == [None]
    assert fired["laravel-generic-method-name"] == [10, 15]
    assert fired["laravel-untyped-param"] == [15]
    assert fired["laravel-missing-return-type"] == [10, 15]
    plural = [v for v in report.violations if v.rule_id == "laravel-controller-singular"]
    assert plural[0].file == "app/Http/Controllers/OrdersController.php"
    assert report.overall_score < 100


def test_flutter_widget_violations_and_fixes(tmp_path: Path) -> None:
    repo = tmp_path / "mobile"
    write_file(repo, "pubspec.yaml", "name: app\ndependencies:\n  flutter:\n    sdk: flutter\n")
    write_file(repo, "lib/widgets/ProfileBadge.dart", BAD_WIDGET)

    report = audit(repo, AuditConfig(mode="full"))
    fired = _fired(report)
    assert fired["flutter-file-snake-case"] == [None]
    assert fired["flutter-const-constructor"] == [5]
    assert fired["flutter-hardcoded-color"] == [15]
    assert fired["flutter-hardcoded-text-style"] == [16]
    assert fired["flutter-stateful-widget"] == [4]
    assert "flutter-class-pascal-case" not in fired


def test_nextjs_component_violations(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    write_file(repo, "package.json", json.dumps({"dependencies": {"next": "14.2.0"}}))
    write_file(
        repo,
        "src/components/userCard.tsx",
        "\n".join(
            [
                "import { useEffect } from 'react';",
                "",
                "export default function UserCard(props) {",
                "  useEffect(async () => {",
                "    console.log('mounted');",
                "  }, []);",
                "  return <img src={props.avatar} />;",
                "}",
                "",
            ]
        ),
    )

    report = audit(repo, AuditConfig(mode="full"))
    fired = _fired(report)
    assert fired["nextjs-component-file-pascal-case"] == [None]
    assert fired["nextjs-async-use-effect"] == [4]
    assert fired["nextjs-console-log"] == [5]
    assert fired["nextjs-img-element"] == [7]
    assert fired["nextjs-untyped-props"] == [3]
    assert report.counts_by_severity["error"] == 1
