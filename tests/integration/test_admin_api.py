"""Integration tests for academic administration, class and attendance endpoints."""


def student_row(i, **overrides):
    row = {
        "first_name": f"Imported{i}",
        "last_name": "Vega",
        "email": f"imported{i}@school.edu",
        "grade": 1,
        "group": "A",
        "enrollment_number": f"I{i:04d}",
    }
    row.update(overrides)
    return row


class TestStudentAdministration:
    """Tests for student and teacher management."""

    def test_import_students(self, client, auth_headers, school) -> None:
        admin = auth_headers(school.admin)
        rows = [student_row(i) for i in range(1, 11)]
        rows += [student_row(11, enrollment_number="M0002"), student_row(12, email="student3@school.edu")]

        response = client.post(
            "/api/admin/students/import", json={"rows": rows, "class_id": 3}, headers=admin
        )

        assert response.status_code == 200
        summary = response.json()
        assert (summary["inserted"], summary["skipped"]) == (10, 2)

        roster = client.get("/api/admin/classes/3/students", headers=admin).json()
        assert len(roster) == 13

    def test_create_and_list_students(self, client, auth_headers, school) -> None:
        admin = auth_headers(school.admin)
        created = client.post(
            "/api/admin/students",
            json={
                "first_name": "Ines",
                "last_name": "Mora",
                "email": "ines@school.edu",
                "grade": 4,
                "group": "d",
                "enrollment_number": "M0500",
            },
            headers=admin,
        )

        assert created.json()["group"] == "D"
        listed = client.get("/api/admin/students?grade=4", headers=admin).json()
        assert [s["email"] for s in listed] == ["ines@school.edu"]

    def test_duplicate_teacher_email(self, client, auth_headers, school) -> None:
        response = client.post(
            "/api/admin/teachers",
            json={"first_name": "Dup", "last_name": "Licate", "email": "pablo.ortega@school.edu"},
            headers=auth_headers(school.admin),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_EXISTS"


class TestClassAdministration:
    """Tests for classes and enrollments."""

    def test_create_class_and_enroll(self, client, auth_headers, school) -> None:
        admin = auth_headers(school.admin)
        created = client.post(
            "/api/admin/classes",
            json={"teacher_id": 2, "name": "Chemistry", "code": "CHE-1"},
            headers=admin,
        ).json()

        enrolled = client.post(
            "/api/admin/enrollments",
            json={"student_id": 1, "class_id": created["class_id"]},
            headers=admin,
        )
        assert enrolled.status_code == 200

        bulk = client.post(
            "/api/admin/enrollments/bulk",
            json={"class_id": created["class_id"], "student_ids": [1, 3, 5]},
            headers=admin,
        ).json()
        assert (bulk["inserted"], bulk["skipped"]) == (2, 1)

        classes = client.get("/api/admin/classes?teacher_id=2", headers=admin).json()
        assert {c["code"]: c["total_students"] for c in classes} == {"BIO-2": 3, "CHE-1": 3}

    def test_teacher_sees_own_classes(self, client, auth_headers, school) -> None:
        mine = client.get("/api/classes/mine", headers=auth_headers(school.teacher)).json()

        assert sorted(c["name"] for c in mine) == ["History", "Mathematics"]

    def test_student_sees_enrolled_classes(self, client, auth_headers, school) -> None:
        enrolled = client.get(
            "/api/classes/mine/enrolled", headers=auth_headers(school.student(2))
        ).json()

        assert [c["name"] for c in enrolled] == ["Biology", "Mathematics"]

    def test_teacher_cannot_read_foreign_roster(self, client, auth_headers, school) -> None:
        response = client.get("/api/classes/3/students", headers=auth_headers(school.teacher))

        assert response.status_code == 403


class TestAttendance:
    """Tests for attendance recording through the API."""

    def test_record_and_correct(self, client, auth_headers, school) -> None:
        teacher = auth_headers(school.teacher)
        batch = {
            "attendance_date": "2025-03-10",
            "entries": [
                {"student_id": 7, "status": "present"},
                {"student_id": 8, "status": "absent"},
            ],
        }

        first = client.post("/api/attendance/2", json=batch, headers=teacher).json()
        assert first["action"] == "recorded"

        batch["entries"][1]["status"] = "excused"
        second = client.post("/api/attendance/2", json=batch, headers=teacher).json()
        assert second["action"] == "updated"

        day = client.get("/api/attendance/2/date?date=2025-03-10", headers=teacher).json()
        assert {r["student_id"]: r["status"] for r in day} == {7: "present", 8: "excused"}

        history = client.get("/api/attendance/2/history", headers=teacher).json()
        assert history[0]["counts"]["excused"] == 1

    def test_foreign_class(self, client, auth_headers, school) -> None:
        response = client.post(
            "/api/attendance/1",
            json={"attendance_date": "2025-03-10", "entries": [{"student_id": 1, "status": "present"}]},
            headers=auth_headers(school.other_teacher),
        )

        assert response.status_code == 403


class TestGradesAndGroups:
    """Tests for grade moves, group removal and the dashboard."""

    def test_promotion_moves_grade_audience(self, client, auth_headers, school) -> None:
        admin = auth_headers(school.admin)
        client.post(
            "/api/notifications/admin",
            json={
                "title": "Welcome to fourth grade",
                "message": "Orientation on Monday",
                "target_mode": "ALUMNOS_GRADO",
                "grade": 4,
            },
            headers=admin,
        )
        student1 = auth_headers(school.student(1))
        assert client.get("/api/notifications/student", headers=student1).json() == []

        response = client.post(
            "/api/admin/students/promote-grade", json={"grade": 3, "group": "A"}, headers=admin
        )

        assert response.json() == {"updated": 3}
        seen = client.get("/api/notifications/student", headers=student1).json()
        assert [n["title"] for n in seen] == ["Welcome to fourth grade"]
        student2 = auth_headers(school.student(2))
        assert client.get("/api/notifications/student", headers=student2).json() == []

    def test_demote_everyone(self, client, auth_headers, school) -> None:
        response = client.post(
            "/api/admin/students/demote-grade", json={}, headers=auth_headers(school.admin)
        )

        assert response.json() == {"updated": 10}

    def test_delete_group(self, client, auth_headers, school) -> None:
        admin = auth_headers(school.admin)

        response = client.delete("/api/admin/groups/2/b", headers=admin)

        assert response.json() == {"grade": 2, "group": "B", "deleted": 2}
        assert client.delete("/api/admin/groups/2/B", headers=admin).status_code == 404
        catalog = client.get("/api/admin/grades-groups", headers=admin).json()
        assert catalog == {"grades": [2, 3], "groups": ["A", "B"]}

    def test_dashboard(self, client, auth_headers, school) -> None:
        client.post(
            "/api/notifications/teacher",
            json={
                "title": "Quiz",
                "message": "Chapter 4",
                "target_mode": "ALUMNOS_CLASE",
                "recipients": [1],
            },
            headers=auth_headers(school.teacher),
        )

        stats = client.get("/api/admin/dashboard/stats", headers=auth_headers(school.admin)).json()

        assert (stats["students"], stats["teachers"], stats["classes"]) == (10, 2, 3)
        assert stats["pending_notifications"] == 1
        assert sum(g["total"] for g in stats["distribution"]) == 10

    def test_teacher_cannot_promote(self, client, auth_headers, school) -> None:
        response = client.post(
            "/api/admin/students/promote-grade", json={}, headers=auth_headers(school.teacher)
        )

        assert response.status_code == 403


class TestAttendanceOversight:
    """Tests for administrator review of attendance."""

    def test_review_and_clear(self, client, auth_headers, school) -> None:
        client.post(
            "/api/attendance/2",
            json={
                "attendance_date": "2025-03-10",
                "entries": [
                    {"student_id": 7, "status": "present"},
                    {"student_id": 8, "status": "late"},
                ],
            },
            headers=auth_headers(school.teacher),
        )
        admin = auth_headers(school.admin)

        report = client.get("/api/admin/classes/2/attendance", headers=admin).json()
        assert report["total"] == 2
        assert report["counts"]["late"] == 1

        first_id = report["records"][0]["attendance_id"]
        assert client.delete(f"/api/admin/attendance/{first_id}", headers=admin).status_code == 200

        cleared = client.delete("/api/admin/classes/2/attendance", headers=admin)
        assert cleared.json() == {"deleted": 1}
        assert client.delete("/api/admin/classes/2/attendance", headers=admin).status_code == 404
