"""Demo: record completions and read the progress views using FastAPI TestClient.

Run with:
    python scripts/demo_progress_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from edusmart.main import app
from edusmart.services import token_service

LEARNER = "demo-learner"


def main() -> None:
    client = TestClient(app)
    headers = {
        "Authorization": f"Bearer {token_service.create_access_token(sub=LEARNER)}"
    }

    # ── Step 1: a resource completion ───────────────────────────────
    video = {
        "resource_id": "yt-flexbox",
        "resource_type": "video",
        "domain": "Web Development",
        "platform": "YouTube",
        "title": "Flexbox in 15 minutes",
        "duration_seconds": 900,
    }
    r = client.post("/v1/progress/events", json=video, headers=headers)
    body = r.json()
    print(
        f"1. POST /v1/progress/events (video)     → {r.status_code}  "
        f"xp={body['user_stats']['xp']} "
        f"unlocked={[a['type'] for a in body['new_achievements']]}"
    )

    # ── Step 2: the same completion again ───────────────────────────
    r = client.post("/v1/progress/events", json=video, headers=headers)
    print(
        f"2. POST /v1/progress/events (retry)     → {r.status_code}  "
        f"duplicate={r.json()['duplicate']}"
    )

    # ── Step 3: a rejected completion ───────────────────────────────
    r = client.post(
        "/v1/progress/events",
        json={**video, "resource_type": "podcast"},
        headers=headers,
    )
    print(f"3. POST /v1/progress/events (podcast)   → {r.status_code}  {r.json()['detail']['code']}")

    # ── Step 4: work through a course ───────────────────────────────
    for module_id in ("html-fundamentals", "css-styling"):
        r = client.post(
            "/v1/progress/events",
            json={
                "kind": "module",
                "course_id": "web-development-fundamentals",
                "module_id": module_id,
            },
            headers=headers,
        )
        progress = r.json()["course_progress"]
        print(
            f"4. POST /v1/progress/events ({module_id:<17}) → {r.status_code}  "
            f"course={progress['percent_complete']}% next={progress['current_module_id']}"
        )

    # ── Step 5: read side ───────────────────────────────────────────
    stats = client.get("/v1/progress/stats", headers=headers).json()
    print(
        f"5. GET  /v1/progress/stats              → level={stats['level']} "
        f"xp={stats['xp']} streak={stats['streak_days']}"
    )

    domains = client.get("/v1/progress/domains", headers=headers).json()
    for name, domain in domains.items():
        print(
            f"   {name}: {domain['total_completed']} completed, "
            f"{domain['total_hours']}h, by type {domain['counts_by_type']}"
        )

    heatmap = client.get("/v1/progress/heatmap?days=7", headers=headers).json()
    print(f"6. GET  /v1/progress/heatmap?days=7     → {[d['count'] for d in heatmap]}")

    timeline = client.get("/v1/progress/timeline?limit=3", headers=headers).json()
    print(f"7. GET  /v1/progress/timeline?limit=3   → {[e['resource_id'] for e in timeline]}")

    achievements = client.get("/v1/achievements", headers=headers).json()
    print(f"8. GET  /v1/achievements                → {[a['type'] for a in achievements]}")


if __name__ == "__main__":
    main()
