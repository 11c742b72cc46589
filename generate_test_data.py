import random
import time

import requests

BASE_URL = "http://127.0.0.1:8000"

ISSUES = {
    "anxiety": "Anxiety",
    "depression": "Depression",
    "adhd": "ADHD",
    "ocd": "OCD",
    "social_phobia": "Social Phobia",
}

# Each question contributes to one or two issues
QUESTIONS = [
    {"id": "q_worry", "question_text": "Worries a lot about everyday things", "weights": {"anxiety": 80}},
    {"id": "q_sleep", "question_text": "Has trouble falling asleep", "weights": {"anxiety": 40, "depression": 60}},
    {"id": "q_mood", "question_text": "Seems sad or withdrawn", "weights": {"depression": 90}},
    {"id": "q_focus", "question_text": "Finds it hard to stay focused", "weights": {"adhd": 85}},
    {"id": "q_fidget", "question_text": "Fidgets or cannot sit still", "weights": {"adhd": 70}},
    {"id": "q_rituals", "question_text": "Repeats routines in a fixed order", "weights": {"ocd": 90}},
    {"id": "q_crowds", "question_text": "Avoids speaking in front of others", "weights": {"social_phobia": 80, "anxiety": 20}},
]

CHILDREN = {
    "child_ana": "parent_ana",
    "child_ben": "parent_ben",
    "child_kai": "parent_kai",
}

SUBJECTS = ["Mathematics", "Science", "English", "History"]
HABITS = [
    "eats_breakfast_regularly",
    "drinks_enough_water",
    "eats_fruits_daily",
    "eats_vegetables_daily",
    "limits_junk_food",
    "has_regular_meal_times",
    "enjoys_variety_of_foods",
    "eats_appropriate_portions",
]


def check_connection():
    try:
        r = requests.get(BASE_URL)
        print(f"Server status: {r.status_code}")
        return r.status_code == 200
    except requests.RequestException as e:
        print(f"Server connection error: {e}")
        return False


def seed_questions():
    for question in QUESTIONS:
        payload = {
            "id": question["id"],
            "question_text": question["question_text"],
            "question_type": "rating",
            "issue_weightages": [
                {"issue_id": issue_id, "issue_name": ISSUES[issue_id], "weightage": weight}
                for issue_id, weight in question["weights"].items()
            ],
        }
        r = requests.post(f"{BASE_URL}/questions", json=payload)
        if not r.ok:
            print(f"Failed to store question {question['id']}: {r.status_code}")


def register_child(child_id, parent_id):
    r = requests.post(f"{BASE_URL}/children", json={"child_id": child_id, "parent_id": parent_id})
    if r.ok:
        print(f"Child {child_id} registered for {parent_id}.")
        return True
    print(f"Registration failed for {child_id}: {r.status_code}")
    return False


def submit_assessment(child_id, parent_id, method):
    responses = [
        {"question_id": question["id"], "answer": random.randint(0, 100)}
        for question in QUESTIONS
    ]
    r = requests.post(f"{BASE_URL}/assessments", json={
        "child_id": child_id,
        "parent_id": parent_id,
        "responses": responses,
        "method": method,
    })
    if not r.ok:
        print(f" → Assessment error: {r.status_code} {r.text[:200]}")
        return
    result = r.json()
    tiers = ", ".join(f"{issue['issue_id']}={issue['severity']}" for issue in result["issues"])
    print(f" → [{method}] {tiers}")


def submit_grades(child_id, terms):
    base = random.randint(55, 85)
    for term in range(terms):
        drift = random.randint(-6, 8) * term
        subjects = [
            {"subject": subject, "marks": max(0, min(100, base + drift + random.randint(-12, 12)))}
            for subject in SUBJECTS
        ]
        r = requests.post(
            f"{BASE_URL}/children/{child_id}/education/records",
            json={"grade_year": f"Term {term + 1}", "subjects": subjects},
        )
        if not r.ok:
            print(f" → Grade record error: {r.status_code}")
        time.sleep(0.1)


def submit_nutrition(child_id, entries):
    height = random.uniform(120, 150)
    weight = random.uniform(22, 45)
    for _ in range(entries):
        height += random.uniform(0, 2)
        weight += random.uniform(-1, 2.5)
        r = requests.post(f"{BASE_URL}/children/{child_id}/nutrition/records", json={
            "physical_measurement": {"height_cm": round(height, 1), "weight_kg": round(weight, 1)},
            "eating_habits": {habit: random.random() < 0.7 for habit in HABITS},
        })
        if not r.ok:
            print(f" → Nutrition record error: {r.status_code}")
        time.sleep(0.1)


def run_seed():
    if not check_connection():
        return

    seed_questions()
    for child_id, parent_id in CHILDREN.items():
        if not register_child(child_id, parent_id):
            continue
        print(f"\nSeeding data for {child_id}")
        for method in ("weighted_average", "t_score_non_weighted", "t_score_weighted"):
            submit_assessment(child_id, parent_id, method)
        submit_grades(child_id, terms=4)
        submit_nutrition(child_id, entries=3)

        r = requests.get(f"{BASE_URL}/children/{child_id}/education/analysis")
        if r.ok:
            analysis = r.json().get("analysis") or {}
            print(f" → Education trend: {analysis.get('trend')} (GPA {analysis.get('overall_gpa')})")
        r = requests.get(f"{BASE_URL}/children/{child_id}/nutrition/analysis")
        if r.ok:
            analysis = r.json().get("analysis") or {}
            print(f" → BMI {analysis.get('bmi')} ({analysis.get('bmi_category')})")


if __name__ == "__main__":
    run_seed()
