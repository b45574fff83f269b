from tests.base import ApiTestBase

from app.models.student import Student
from app.models.student_staff import StudentStaff


class StudentsApiTests(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.headers = self._auth_headers("admin")
        self.agent = self._create_user(name="Agent", email="agent@example.com", role="customer")
        self.staff = self._create_user(name="Staff", email="staff@example.com", role="staff")
        self.other_staff = self._create_user(name="Other", email="other@example.com", role="staff")

    def _create_student(self, **fields) -> Student:
        staff_ids = fields.pop("staff_ids", [])
        with self.SessionLocal() as db:
            student = Student(**fields)
            student.assign_staffs = [StudentStaff(staff_id=staff_id) for staff_id in staff_ids]
            db.add(student)
            db.commit()
            db.refresh(student)
            db.expunge(student)
            return student

    def _names(self, response):
        self.assertEqual(response.status_code, 200, response.text)
        return sorted(row["name"] for row in response.json()["data"]["result"])

    def test_create_student_with_staff(self):
        response = self.client.post(
            "/api/students",
            json={
                "ref_id": "ST-1",
                "name": "Rahim",
                "agent_id": str(self.agent.id),
                "staff_ids": [str(self.staff.id)],
                "documents": {"passport": {"country": "BD"}},
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        data = response.json()["data"]
        self.assertEqual(data["agent"], {"id": str(self.agent.id), "name": "Agent"})
        self.assertEqual(data["staff_ids"], [str(self.staff.id)])
        self.assertEqual(data["status"], "pending")

    def test_duplicate_ref_id_is_bad_request(self):
        self._create_student(ref_id="ST-1", name="Rahim")
        response = self.client.post("/api/students", json={"ref_id": "ST-1", "name": "Karim"}, headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_unknown_staff_is_rejected(self):
        response = self.client.post(
            "/api/students",
            json={"ref_id": "ST-1", "name": "Rahim", "staff_ids": ["00000000-0000-0000-0000-000000000000"]},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["message"], "The selected staff is invalid.")

    def test_named_filters(self):
        self._create_student(ref_id="ST-1", name="Rahim", status="approved", agent_id=self.agent.id, staff_ids=[self.staff.id])
        self._create_student(ref_id="ST-2", name="Karim", status="pending", staff_ids=[self.other_staff.id])
        self._create_student(ref_id="ST-3", name="Salma", status="pending", agent_id=self.agent.id)

        response = self.client.get("/api/students", params={"staffId": str(self.staff.id)}, headers=self.headers)
        self.assertEqual(self._names(response), ["Rahim"])

        response = self.client.get("/api/students", params={"agentId": str(self.agent.id)}, headers=self.headers)
        self.assertEqual(self._names(response), ["Rahim", "Salma"])

        response = self.client.get("/api/students", params={"refId": "ST-2"}, headers=self.headers)
        self.assertEqual(self._names(response), ["Karim"])

        response = self.client.get(
            "/api/students", params={"agentId": str(self.agent.id), "status": "pending"}, headers=self.headers
        )
        self.assertEqual(self._names(response), ["Salma"])

    def test_created_by_filter(self):
        response = self.client.post("/api/students", json={"ref_id": "ST-9", "name": "Mine"}, headers=self.headers)
        creator_id = response.json()["data"]["created_by_id"]
        self._create_student(ref_id="ST-1", name="Other")

        response = self.client.get("/api/students", params={"createdBy": creator_id}, headers=self.headers)
        self.assertEqual(self._names(response), ["Mine"])

    def test_unlisted_params_are_ignored(self):
        self._create_student(ref_id="ST-1", name="Rahim")
        response = self.client.get("/api/students", params={"documents": "x", "ref_id": "nope"}, headers=self.headers)
        self.assertEqual(self._names(response), ["Rahim"])

    def test_search_uses_curated_columns(self):
        self._create_student(ref_id="ST-1", name="Rahim", email="rahim@example.com")
        self._create_student(ref_id="ST-2", name="Karim", status="rahim-like")

        response = self.client.get("/api/students", params={"searchTerm": "rahim"}, headers=self.headers)
        self.assertEqual(self._names(response), ["Rahim"])

        response = self.client.get("/api/students", params={"searchTerm": "ST-2"}, headers=self.headers)
        self.assertEqual(self._names(response), ["Karim"])

    def test_documents_search(self):
        self._create_student(ref_id="ST-1", name="Rahim", documents={"passport": {"country": "BD"}, "ielts": 7})
        self._create_student(ref_id="ST-2", name="Karim", documents={"passport": {"country": "IN"}, "ielts": 5})

        response = self.client.post(
            "/api/students/documents/search",
            json={"conditions": {"ielts": {"operator": ">=", "value": 6}}},
            headers=self.headers,
        )
        self.assertEqual(self._names(response), ["Rahim"])

        response = self.client.post(
            "/api/students/documents/search",
            params={"refId": "ST-1"},
            json={"conditions": {"passport": {"country": "IN"}}},
            headers=self.headers,
        )
        self.assertEqual(self._names(response), [])

    def test_patch_replaces_staff_assignments(self):
        student = self._create_student(ref_id="ST-1", name="Rahim", staff_ids=[self.staff.id])
        response = self.client.patch(
            f"/api/students/{student.id}",
            json={"staff_ids": [str(self.staff.id), str(self.other_staff.id)], "documents": {"visa": True}},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        data = response.json()["data"]
        self.assertEqual(sorted(data["staff_ids"]), sorted([str(self.staff.id), str(self.other_staff.id)]))
        self.assertEqual(data["documents"], {"visa": True})

    def test_staff_can_list_but_not_delete(self):
        student = self._create_student(ref_id="ST-1", name="Rahim")
        staff_headers = self._auth_headers("staff", email="staff-login@example.com")

        response = self.client.get("/api/students", headers=staff_headers)
        self.assertEqual(response.status_code, 200)

        response = self.client.delete(f"/api/students/{student.id}", headers=staff_headers)
        self.assertEqual(response.status_code, 403)

        response = self.client.delete(f"/api/students/{student.id}", headers=self.headers)
        self.assertEqual(response.status_code, 200)

    def test_customer_cannot_list_students(self):
        response = self.client.get("/api/students", headers=self._auth_headers("customer", email="c@example.com"))
        self.assertEqual(response.status_code, 403)

    def test_blank_filter_params_are_ignored(self):
        self._create_student(ref_id="ST-1", name="Rahim", staff_ids=[self.staff.id])
        response = self.client.get("/api/students", params={"status": "", "staffId": ""}, headers=self.headers)
        self.assertEqual(self._names(response), ["Rahim"])

    def test_hidden_columns_cannot_be_filtered(self):
        self._create_student(ref_id="ST-1", name="Rahim", agent_id=self.agent.id)
        self._create_student(ref_id="ST-2", name="Karim")
        for prefix in ("$pbkdf2-sha256%", "ZZZ%"):
            with self.subTest(prefix=prefix):
                response = self.client.get(
                    "/api/students",
                    params={"where": f"with:agent,password_hash,{prefix}"},
                    headers=self.headers,
                )
                self.assertEqual(self._names(response), ["Karim", "Rahim"])

    def test_documents_search_rejects_malformed_between(self):
        for condition in ({"operator": "between", "value": 5}, {"operator": "between"}):
            with self.subTest(condition=condition):
                response = self.client.post(
                    "/api/students/documents/search",
                    json={"conditions": {"ielts": condition}},
                    headers=self.headers,
                )
                self.assertEqual(response.status_code, 422)
                self.assertEqual(response.json(), {"success": False, "message": "between requires two values"})
