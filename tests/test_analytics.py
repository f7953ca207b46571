from datetime import timedelta
from cfa_practice.models.orm import UserProgress, utcnow
from cfa_practice.services import storage
from cfa_practice.services.analytics import ratio_half_up, accuracy, topic_performance, compute_analytics

def test_rounding_is_half_up():
    assert accuracy(2, 3) == 67
    assert accuracy(1, 3) == 33
    assert accuracy(1, 2) == 50
    assert accuracy(1, 8) == 13  # 12.5
    assert ratio_half_up(5, 2) == 3 and ratio_half_up(7, 2) == 4
    assert ratio_half_up(1800, 3600) == 1 and ratio_half_up(1799, 3600) == 0

def test_zero_attempts_never_divide():
    assert accuracy(0, 0) == 0 and ratio_half_up(10, 0) == 0
    row = topic_performance(1, "Quant", None)
    assert row["accuracy"] == 0 and row["avgTimePerQuestion"] == 0 and row["questionsAttempted"] == 0
    empty = topic_performance(1, "Quant", UserProgress(user_id=1, topic_id=1, questions_attempted=0, questions_correct=0, total_time_spent=0))
    assert empty["accuracy"] == 0 and empty["avgTimePerQuestion"] == 0

def test_summary_over_all_topics(student, content, db):
    storage.increment_progress(db, student.id, content["ethics"], 1, 3000)
    storage.increment_progress(db, student.id, content["ethics"], 1, 1000)
    storage.increment_progress(db, student.id, content["quant"], 0, 1400)
    db.commit()
    data = compute_analytics(db, student.id)
    s = data["summary"]
    assert s["totalQuestions"] == 3 and s["accuracy"] == 67
    assert s["totalTimeSpent"] == 2  # 5400s = 1.5h
    assert s["avgTimePerQuestion"] == 1800 and s["totalAvailableQuestions"] == 3 and s["change"] == 0
    perf = {t["topicName"]: t for t in data["topicPerformance"]}
    assert perf["Ethics"]["accuracy"] == 100 and perf["Ethics"]["avgTimePerQuestion"] == 2000
    assert perf["Quant"]["accuracy"] == 0 and perf["Quant"]["questionsAttempted"] == 1
    assert data["user"]["username"] == "student"

def test_recent_activity_newest_first(student, content, db):
    now = utcnow()
    for i in range(7):
        a = storage.create_user_activity(db, student.id, "question_answered", topic_id=content["ethics"], details={"n": i})
        a.activity_date = now - timedelta(minutes=10 - i)
    db.commit()
    recent = compute_analytics(db, student.id)["recentActivity"]
    assert [a["details"]["n"] for a in recent] == [6, 5, 4, 3, 2]
    assert recent[0]["topic"] == {"id": content["ethics"], "name": "Ethics"}

def test_analytics_endpoint(student_client, student, content):
    r = student_client.get(f"/api/analytics/{student.id}")
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"user", "summary", "topicPerformance", "recentActivity"}
    assert all(t["accuracy"] == 0 for t in body["topicPerformance"])

def test_analytics_is_self_or_admin(student_client, admin_client, student, admin, content):
    assert student_client.get(f"/api/analytics/{admin.id}").status_code == 403
    assert admin_client.get(f"/api/analytics/{student.id}").status_code == 200
    assert admin_client.get("/api/analytics/9999").status_code == 404

def test_activity_feed_limit_and_topic(student_client, student, content, db):
    for i in range(12):
        storage.create_user_activity(db, student.id, "question_answered", topic_id=content["quant"], details={"n": i})
    db.commit()
    r = student_client.get(f"/api/activity/{student.id}")
    assert r.status_code == 200 and len(r.json()) == 10
    assert r.json()[0]["topic"]["name"] == "Quant"
    assert len(student_client.get(f"/api/activity/{student.id}?limit=3").json()) == 3

def test_progress_list_embeds_topic(student_client, student, content):
    student_client.post("/api/answers", json={"questionId": content["q3"], "userOption": "D", "timeSpent": 9})
    rows = student_client.get(f"/api/progress/{student.id}").json()
    assert len(rows) == 1 and rows[0]["topic"]["name"] == "Quant" and rows[0]["questionsCorrect"] == 1
