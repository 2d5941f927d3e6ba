# src/utils/persistence.py
import json
from pathlib import Path

def _ensure_parent(path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path

def save_alert_jsonl(alert: dict, path="logs/alerts.jsonl"):
    path = _ensure_parent(path)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(alert, ensure_ascii=False) + "\n")
    return str(path)

def append_line(path, line: str):
    path = _ensure_parent(path)
    with open(path, "a", encoding="utf-8") as f:
        f.write(line.rstrip("\n") + "\n")
    return str(path)
