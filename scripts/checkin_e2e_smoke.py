#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

ROUTINE_INTAKE = ["yes", "yes", "routine checkup", "40, female, 70kg, 1.65m", "none", "none"]


@dataclass
class Scenario:
  name: str
  inputs: list[str]
  expected_node: str
  expected_status: str = "active"
  expected_flags: list[str] = field(default_factory=list)


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  # Scratch database; generation stays off unless the caller opts in.
  scratch_dir = tempfile.mkdtemp(prefix="checkin-smoke-")
  os.environ["CHECKIN_DB_PATH"] = str(Path(scratch_dir) / "smoke.sqlite")
  os.environ.setdefault("CHECKIN_LLM_DISABLED", "true")

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)

  run_stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")

  scenarios = [
    Scenario(
      name="Decline At Start",
      inputs=["no"],
      expected_node="END",
      expected_status="completed",
    ),
    Scenario(
      name="Routine Check-in To Summary",
      inputs=[*ROUTINE_INTAKE, "no, all good", "no", "last year", ""],
      expected_node="END",
      expected_status="completed",
    ),
    Scenario(
      name="Mood Screen With PHQ-2",
      inputs=[*ROUTINE_INTAKE, "nothing new", "yes", "nearly every day", "more than half the days"],
      expected_node="PREVENTIVE",
    ),
    Scenario(
      name="Chest Pain Escalation",
      inputs=[*ROUTINE_INTAKE, "Crushing chest pressure radiating to my jaw with sweating"],
      expected_node="URGENT_CARDIO",
      expected_flags=["cardio_critical"],
    ),
    Scenario(
      name="Crisis Language Escalation",
      inputs=["yes", "yes", "honestly I want to die"],
      expected_node="CRISIS_RESOURCES",
      expected_flags=["mental_health_critical"],
    ),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for index, scenario in enumerate(scenarios):
      subject_id = f"smoke-subject-{run_stamp}-{index}"
      start_response = client.post("/sessions", json={"subject_id": subject_id})

      scenario_result: dict[str, Any] = {
        "name": scenario.name,
        "expected_node": scenario.expected_node,
        "expected_status": scenario.expected_status,
        "start_status_code": start_response.status_code,
        "transcript": [],
      }

      if start_response.status_code != 200:
        scenario_result["pass"] = False
        scenario_result["error"] = f"/sessions returned {start_response.status_code}"
        results.append(scenario_result)
        continue

      session_id = start_response.json()["session_id"]
      scenario_result["session_id"] = session_id

      for text in scenario.inputs:
        turn_response = client.post(f"/sessions/{session_id}/turns", json={"input": text})
        if turn_response.status_code != 200:
          scenario_result["error"] = f"Turn {text!r} returned {turn_response.status_code}"
          break
        body = turn_response.json()
        scenario_result["transcript"].append(
          {
            "input": text,
            "from": body.get("previous_state"),
            "to": body.get("next_state"),
            "source": body.get("source"),
            "response_preview": str(body.get("response") or "")[:160],
          }
        )

      state = client.get(f"/sessions/{session_id}").json()
      scenario_result["actual_node"] = state.get("current_node_id")
      scenario_result["actual_status"] = state.get("status")

      flags = client.get(f"/subjects/{subject_id}/red-flags").json().get("items", [])
      scenario_result["red_flags"] = [item.get("flag_id") for item in flags]

      scenario_result["pass"] = (
        "error" not in scenario_result
        and scenario_result["actual_node"] == scenario.expected_node
        and scenario_result["actual_status"] == scenario.expected_status
        and all(flag in scenario_result["red_flags"] for flag in scenario.expected_flags)
      )
      if not scenario_result["pass"] and "error" not in scenario_result:
        scenario_result["error"] = (
          f"Expected {scenario.expected_node}/{scenario.expected_status}, "
          f"got {scenario_result['actual_node']}/{scenario_result['actual_status']}"
        )

      results.append(scenario_result)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Check-in E2E Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- CHECKIN_LLM_DISABLED: `{os.getenv('CHECKIN_LLM_DISABLED')}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Expected node: `{item.get('expected_node')}` ({item.get('expected_status')})")
    report_lines.append(f"- Actual node: `{item.get('actual_node')}` ({item.get('actual_status')})")
    report_lines.append(f"- Red flags recorded: `{', '.join(item.get('red_flags') or []) or 'none'}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    report_lines.append("- Transcript:")
    report_lines.append("```json")
    report_lines.append(json.dumps(item.get("transcript"), indent=2, ensure_ascii=False))
    report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "CHECKIN_E2E_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
