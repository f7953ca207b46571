QUESTION = {
    "questionText": "Which measure is most affected by outliers?", "optionA": "Median", "optionB": "Mode",
    "optionC": "Arithmetic mean", "correctOption": "C", "explanation": "The mean uses every value.", "difficulty": 2,
}

def test_public_reads(client, content):
    topics = client.get("/api/topics").json()
    assert [t["name"] for t in topics] == ["Ethics", "Quant"]
    assert client.get(f"/api/topics/{content['ethics']}").json()["icon"] == "scale"
    assert client.get("/api/topics/9999").status_code == 404
    assert len(client.get(f"/api/topic-questions/{content['ethics']}").json()) == 2
    assert len(client.get(f"/api/questions/chapter/{content['chapter']}").json()) == 2
    q = client.get(f"/api/questions/{content['q3']}").json()
    assert q["optionD"] == "2" and q["correctOption"] == "D"

def test_chapters_embed_topic(client, content):
    rows = client.get("/api/chapters").json()
    assert len(rows) == 1 and rows[0]["topic"]["name"] == "Ethics"
    assert client.get(f"/api/chapters/topic/{content['ethics']}").json()[0]["name"] == "Code and Standards"
    assert client.get("/api/chapters/9999").status_code == 404

def test_topic_crud(admin_client, content):
    r = admin_client.post("/api/topics", json={"name": "Economics", "description": "Micro and macro"})
    assert r.status_code == 201 and r.json()["icon"] == "book"
    tid = r.json()["id"]
    assert admin_client.post("/api/topics", json={"name": "Ethics"}).status_code == 409
    r = admin_client.patch(f"/api/topics/{tid}", json={"icon": None, "description": "Macro only"})
    assert r.status_code == 200 and r.json()["icon"] is None and r.json()["name"] == "Economics"
    assert admin_client.patch(f"/api/topics/{tid}", json={"name": "Quant"}).status_code == 409
    assert admin_client.delete(f"/api/topics/{tid}").status_code == 204
    assert admin_client.get(f"/api/topics/{tid}").status_code == 404
    assert admin_client.post("/api/topics", json={"name": "Economics"}).status_code == 409

def test_topic_with_live_questions_cannot_be_deleted(admin_client, content):
    assert admin_client.delete(f"/api/topics/{content['quant']}").status_code == 409
    assert admin_client.delete(f"/api/questions/{content['q3']}").status_code == 204
    assert admin_client.delete(f"/api/topics/{content['quant']}").status_code == 204

def test_question_crud(admin_client, content):
    r = admin_client.post("/api/questions", json={**QUESTION, "topicId": content["quant"]})
    assert r.status_code == 201
    qid = r.json()["id"]
    r = admin_client.patch(f"/api/questions/{qid}", json={"optionD": "Range", "correctOption": "D"})
    assert r.status_code == 200 and r.json()["correctOption"] == "D"
    assert admin_client.patch(f"/api/questions/{qid}", json={"optionD": None}).status_code == 400
    assert admin_client.delete(f"/api/questions/{qid}").status_code == 204
    assert admin_client.get(f"/api/questions/{qid}").status_code == 404
    assert qid not in [q["id"] for q in admin_client.get("/api/questions/all").json()]

def test_question_validation(admin_client, content):
    r = admin_client.post("/api/questions", json={**QUESTION, "topicId": content["quant"], "correctOption": "D"})
    assert r.status_code == 400 and r.json()["error"]["message"] == "Validation error"
    assert admin_client.post("/api/questions", json={**QUESTION, "topicId": 9999}).status_code == 404
    r = admin_client.post("/api/questions", json={**QUESTION, "topicId": content["quant"], "chapterId": content["chapter"]})
    assert r.status_code == 400
    assert admin_client.post("/api/questions", json={**QUESTION, "topicId": content["quant"], "difficulty": 5}).status_code == 400

def test_chapter_crud(admin_client, content):
    r = admin_client.post("/api/chapters", json={"topicId": content["quant"], "name": "Time Value of Money", "order": 2})
    assert r.status_code == 201
    cid = r.json()["id"]
    assert admin_client.post("/api/chapters", json={"topicId": 9999, "name": "Nowhere"}).status_code == 404
    assert admin_client.patch(f"/api/chapters/{cid}", json={"order": 1}).json()["order"] == 1
    assert admin_client.delete(f"/api/chapters/{cid}").status_code == 204
    assert admin_client.get(f"/api/chapters/{cid}").status_code == 404

def test_practice_sets(admin_client, client, student, content):
    base = {"topicId": content["ethics"], "questionCount": 10, "estimatedTime": 15}
    r = admin_client.post("/api/practice-sets", json={**base, "name": "Ethics warm-up", "isRecommended": True})
    assert r.status_code == 201 and r.json()["status"] == "new"
    psid = r.json()["id"]
    admin_client.post("/api/practice-sets", json={**base, "name": "Quant drill", "topicId": content["quant"]})
    assert len(client.get("/api/practice-sets").json()) == 2
    rows = client.get(f"/api/practice-sets?topic={content['ethics']}").json()
    assert len(rows) == 1 and rows[0]["topic"]["name"] == "Ethics"
    rec = client.get(f"/api/practice-sets/recommended/{student.id}").json()
    assert [p["name"] for p in rec] == ["Ethics warm-up"]
    assert admin_client.patch(f"/api/practice-sets/{psid}", json={"status": "completed"}).json()["status"] == "completed"
    assert admin_client.patch(f"/api/practice-sets/{psid}", json={"status": "done"}).status_code == 400
    assert admin_client.delete(f"/api/practice-sets/{psid}").status_code == 204
    assert len(client.get("/api/practice-sets").json()) == 1

def test_deleted_chapter_hides_its_questions(client, admin_client, content):
    assert admin_client.delete(f"/api/chapters/{content['chapter']}").status_code == 204
    assert client.get(f"/api/questions/chapter/{content['chapter']}").json() == []
    assert len(client.get(f"/api/topic-questions/{content['ethics']}").json()) == 2

def test_recommended_sets_favour_weak_topics(admin_client, student_client, student, content):
    base = {"questionCount": 10, "estimatedTime": 15, "isRecommended": True}
    admin_client.post("/api/practice-sets", json={**base, "name": "Ethics review", "topicId": content["ethics"]})
    admin_client.post("/api/practice-sets", json={**base, "name": "Quant review", "topicId": content["quant"]})
    names = lambda: [p["name"] for p in student_client.get(f"/api/practice-sets/recommended/{student.id}").json()]
    assert names() == ["Ethics review", "Quant review"]
    student_client.post("/api/answers", json={"questionId": content["q1"], "userOption": "B", "timeSpent": 10})
    assert names() == ["Quant review", "Ethics review"]
    student_client.post("/api/answers", json={"questionId": content["q3"], "userOption": "A", "timeSpent": 10})
    assert names() == ["Quant review", "Ethics review"]
