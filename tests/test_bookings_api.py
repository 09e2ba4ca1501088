from tests.conftest import (
    bearer, booking_payload, guest_headers, in_hours, make_product, make_user, token_for,
)

API = "/api/v1"


def _create(client, user_headers, product_id, **kw):
    r = client.post(f"{API}/bookings", json=booking_payload(product_id, **kw), headers=user_headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def _set_status(client, seller, booking_id, status, note=""):
    return client.put(f"{API}/bookings/{booking_id}/status", json={"status": status, "note": note},
                      headers=bearer(token_for(seller)))


def test_create_booking_snapshots_pricing(client, tourist, product):
    data = _create(client, bearer(token_for(tourist)), product.id, quantity=2)
    assert data["pricing"] == {
        "basePrice": 2000.0, "taxes": 360.0, "fees": 100.0, "discounts": 0.0,
        "totalAmount": 2460.0, "currency": "INR",
    }
    assert data["status"] == "pending"
    assert data["payment"]["status"] == "pending"
    assert data["bookingType"] == "product"
    assert data["bookingId"].startswith("JT")
    assert data["tourist"] == {"kind": "registered", "id": tourist.id}
    assert data["seller"]["id"] == product.seller_id
    assert [t["status"] for t in data["timeline"]] == ["pending"]


def test_price_change_does_not_touch_existing_booking(client, db, tourist, seller, product):
    data = _create(client, bearer(token_for(tourist)), product.id)
    r = client.put(f"{API}/products/{product.id}", json={"price": {"amount": 5000}}, headers=bearer(token_for(seller)))
    assert r.status_code == 200
    r = client.get(f"{API}/bookings/{data['id']}", headers=bearer(token_for(tourist)))
    assert r.json()["data"]["pricing"]["totalAmount"] == 1230.0


def test_only_tourists_create_bookings(client, seller, product):
    r = client.post(f"{API}/bookings", json=booking_payload(product.id), headers=bearer(token_for(seller)))
    assert r.status_code == 403
    assert r.json()["status"] == "error"


def test_unapproved_product_is_not_bookable(client, db, tourist, seller):
    p = make_product(db, seller, is_approved=False)
    r = client.post(f"{API}/bookings", json=booking_payload(p.id), headers=bearer(token_for(tourist)))
    assert r.status_code == 404


def test_quantity_over_stock_names_the_field(client, tourist, product):
    r = client.post(f"{API}/bookings", json=booking_payload(product.id, quantity=11), headers=bearer(token_for(tourist)))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "details.quantity"


def test_body_validation_is_reported_as_400(client, tourist, product):
    r = client.post(f"{API}/bookings", json=booking_payload(product.id, quantity=0), headers=bearer(token_for(tourist)))
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["field"] == "details.quantity"


def test_end_before_start_is_rejected(client, tourist, product):
    start = in_hours(72)
    payload = booking_payload(product.id, start=start, endDate=in_hours(10).isoformat())
    r = client.post(f"{API}/bookings", json=payload, headers=bearer(token_for(tourist)))
    assert r.status_code == 400


def test_requires_authentication(client, product):
    r = client.post(f"{API}/bookings", json=booking_payload(product.id))
    assert r.status_code == 401


def test_status_update_appends_one_timeline_entry(client, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    r = _set_status(client, seller, booking["id"], "confirmed", "see you there")
    assert r.status_code == 200
    timeline = r.json()["data"]["timeline"]
    assert len(timeline) == 2
    assert timeline[-1]["status"] == "confirmed"
    assert timeline[-1]["note"] == "see you there"
    assert timeline[-1]["updatedBy"] == seller.id
    assert r.json()["data"]["status"] == "confirmed"


def test_status_update_permissions(client, db, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    other_seller = make_user(db, "seller")
    assert _set_status(client, other_seller, booking["id"], "confirmed").status_code == 403
    r = client.put(f"{API}/bookings/{booking['id']}/status", json={"status": "confirmed"},
                   headers=bearer(token_for(tourist)))
    assert r.status_code == 403
    admin = make_user(db, "admin")
    assert _set_status(client, admin, booking["id"], "confirmed").status_code == 200


def test_invalid_status_value(client, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    r = _set_status(client, seller, booking["id"], "shipped")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "status"


def test_unrelated_caller_cannot_see_booking(client, db, tourist, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    stranger = make_user(db, "tourist")
    assert client.get(f"{API}/bookings/{booking['id']}", headers=bearer(token_for(stranger))).status_code == 404
    r = client.get(f"{API}/bookings/{booking['bookingId']}", headers=bearer(token_for(tourist)))
    assert r.status_code == 200
    assert r.json()["data"]["id"] == booking["id"]


def test_unrelated_caller_cannot_cancel(client, db, tourist, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    stranger = make_user(db, "tourist")
    r = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "x"}, headers=bearer(token_for(stranger)))
    assert r.status_code == 403


def test_cancel_outside_deadline_refunds_policy_share(client, db, tourist, seller):
    p = make_product(db, seller, cancellation_deadline_hours=24, refund_percentage=50)
    booking = _create(client, bearer(token_for(tourist)), p.id, quantity=2, start=in_hours(48))
    r = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "plans changed"},
                   headers=bearer(token_for(tourist)))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["refundAmount"] == 1230.0
    assert data["booking"]["status"] == "cancelled"
    last = data["booking"]["timeline"][-1]
    assert (last["status"], last["note"]) == ("cancelled", "plans changed")
    assert data["booking"]["cancellation"]["refundStatus"] == "pending"
    assert data["booking"]["cancellation"]["requestedBy"] == {"kind": "registered", "id": tourist.id}


def test_cancel_inside_deadline_refunds_nothing(client, db, tourist, seller):
    p = make_product(db, seller, cancellation_deadline_hours=24, refund_percentage=100)
    booking = _create(client, bearer(token_for(tourist)), p.id, start=in_hours(2))
    r = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "late"}, headers=bearer(token_for(tourist)))
    assert r.status_code == 200
    assert r.json()["data"]["refundAmount"] == 0.0


def test_seller_can_cancel(client, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    r = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "fully booked"},
                   headers=bearer(token_for(seller)))
    assert r.status_code == 200
    assert r.json()["data"]["booking"]["cancellation"]["requestedBy"]["id"] == seller.id


def test_completed_booking_cannot_be_cancelled(client, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    assert _set_status(client, seller, booking["id"], "completed").status_code == 200
    r = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "x"}, headers=bearer(token_for(tourist)))
    assert r.status_code == 400
    r = client.get(f"{API}/bookings/{booking['id']}", headers=bearer(token_for(tourist)))
    assert r.json()["data"]["status"] == "completed"
    assert len(r.json()["data"]["timeline"]) == 2


def test_review_only_once_after_completion(client, db, tourist, seller, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    review = {"rating": 4, "comment": "Lovely craft"}
    assert client.post(f"{API}/bookings/{booking['id']}/review", json=review, headers=headers).status_code == 400

    _set_status(client, seller, booking["id"], "completed")
    stranger = make_user(db, "tourist")
    r = client.post(f"{API}/bookings/{booking['id']}/review", json=review, headers=bearer(token_for(stranger)))
    assert r.status_code == 403

    r = client.post(f"{API}/bookings/{booking['id']}/review", json=review, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["review"]["rating"] == 4
    assert client.post(f"{API}/bookings/{booking['id']}/review", json=review, headers=headers).status_code == 400

    rating = client.get(f"{API}/products/{product.id}").json()["data"]["rating"]
    assert rating == {"average": 4.0, "count": 1}


def test_reviewed_booking_stays_completed(client, tourist, seller, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    _set_status(client, seller, booking["id"], "completed")
    client.post(f"{API}/bookings/{booking['id']}/review", json={"rating": 5}, headers=headers)
    assert _set_status(client, seller, booking["id"], "in_progress").status_code == 400


def test_confirm_payment_is_idempotent(client, tourist, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    r = client.post(f"{API}/payments/create-payment-intent", json={"bookingId": booking["id"]}, headers=headers)
    assert r.status_code == 200
    intent_id = r.json()["data"]["paymentIntentId"]

    body = {"bookingId": booking["id"], "paymentIntentId": intent_id}
    first = client.post(f"{API}/payments/confirm-payment", json=body, headers=headers)
    second = client.post(f"{API}/payments/confirm-payment", json=body, headers=headers)
    assert first.status_code == 200 and second.status_code == 200
    data = second.json()["data"]
    assert data["payment"]["status"] == "paid"
    assert data["payment"]["transactionId"] == intent_id
    assert data["status"] == "confirmed"
    assert [t["status"] for t in data["timeline"]] == ["pending", "confirmed"]

    other = client.post(f"{API}/payments/confirm-payment",
                        json={"bookingId": booking["id"], "paymentIntentId": "pi_other"}, headers=headers)
    assert other.status_code == 409


def test_cancelled_booking_cannot_be_paid(client, tourist, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "x"}, headers=headers)
    r = client.post(f"{API}/payments/confirm-payment",
                    json={"bookingId": booking["id"], "paymentIntentId": "pi_1"}, headers=headers)
    assert r.status_code == 400


def test_only_the_tourist_confirms_payment(client, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    r = client.post(f"{API}/payments/confirm-payment",
                    json={"bookingId": booking["id"], "paymentIntentId": "pi_1"}, headers=bearer(token_for(seller)))
    assert r.status_code == 403


def test_guest_session_books_and_lists(client, tourist, product):
    r = client.post(f"{API}/auth/guest")
    assert r.status_code == 201
    guest = r.json()
    headers = bearer(guest["access_token"])
    booking = _create(client, headers, product.id)
    assert booking["tourist"] == {"kind": "guest", "id": guest["guest_id"]}

    listed = client.get(f"{API}/bookings", headers=headers).json()
    assert [b["id"] for b in listed["data"]] == [booking["id"]]
    assert client.get(f"{API}/bookings", headers=bearer(token_for(tourist))).json()["data"] == []


def test_guest_id_matching_user_id_is_not_that_user(client, tourist, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    spoof = guest_headers(tourist.id)
    assert client.get(f"{API}/bookings/{booking['id']}", headers=spoof).status_code == 404


def test_list_bookings_pagination(client, tourist, seller, product):
    headers = bearer(token_for(tourist))
    for _ in range(3):
        _create(client, headers, product.id)
    r = client.get(f"{API}/bookings?page=2&limit=2", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["data"]) == 1
    assert body["pagination"] == {"currentPage": 2, "totalPages": 2, "totalItems": 3, "itemsPerPage": 2}
    assert "timeline" not in body["data"][0]

    seller_view = client.get(f"{API}/bookings?status=pending", headers=bearer(token_for(seller))).json()
    assert seller_view["pagination"]["totalItems"] == 3


def test_list_limit_is_capped(client, tourist):
    r = client.get(f"{API}/bookings?limit=51", headers=bearer(token_for(tourist)))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "limit"


def test_messages_and_read_receipts(client, db, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    r = client.post(f"{API}/bookings/{booking['id']}/message", json={"message": "Is pickup available?"},
                    headers=bearer(token_for(tourist)))
    assert r.status_code == 200
    assert r.json()["data"][0]["sender"] == tourist.id
    assert r.json()["data"][0]["isRead"] is False

    r = client.put(f"{API}/bookings/{booking['id']}/messages/read", headers=bearer(token_for(seller)))
    assert r.json()["data"]["markedRead"] == 1
    r = client.put(f"{API}/bookings/{booking['id']}/messages/read", headers=bearer(token_for(tourist)))
    assert r.json()["data"]["markedRead"] == 0

    stranger = make_user(db, "tourist")
    r = client.post(f"{API}/bookings/{booking['id']}/message", json={"message": "hi"},
                    headers=bearer(token_for(stranger)))
    assert r.status_code == 403


def test_admin_processes_full_refund(client, db, tourist, admin, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    client.post(f"{API}/payments/confirm-payment",
                json={"bookingId": booking["id"], "paymentIntentId": "pi_full"}, headers=headers)
    client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "ill"}, headers=headers)

    assert client.post(f"{API}/bookings/{booking['id']}/refund", json={}, headers=headers).status_code == 403
    r = client.post(f"{API}/bookings/{booking['id']}/refund", json={"reason": "ill"}, headers=bearer(token_for(admin)))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["payment"]["status"] == "refunded"
    assert data["payment"]["refundAmount"] == 1230.0
    assert data["pricing"]["totalAmount"] == 1230.0
    assert data["cancellation"]["refundStatus"] == "processed"


def test_partial_refund(client, db, tourist, seller, admin):
    p = make_product(db, seller, refund_percentage=50)
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, p.id)
    client.post(f"{API}/payments/confirm-payment",
                json={"bookingId": booking["id"], "paymentIntentId": "pi_half"}, headers=headers)
    client.post(f"{API}/bookings/{booking['id']}/cancel", json={}, headers=headers)
    r = client.post(f"{API}/bookings/{booking['id']}/refund", json={}, headers=bearer(token_for(admin)))
    assert r.json()["data"]["payment"]["status"] == "partially_refunded"
    assert r.json()["data"]["payment"]["refundAmount"] == 615.0


def test_refund_requires_cancelled_booking(client, tourist, admin, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    r = client.post(f"{API}/bookings/{booking['id']}/refund", json={}, headers=bearer(token_for(admin)))
    assert r.status_code == 400


def test_cancelled_booking_is_not_reopened(client, tourist, seller, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    assert client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "ill"}, headers=headers).status_code == 200

    r = _set_status(client, seller, booking["id"], "confirmed")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "status"
    assert client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "again"}, headers=headers).status_code == 400

    data = client.get(f"{API}/bookings/{booking['id']}", headers=headers).json()["data"]
    assert data["status"] == "cancelled"
    assert data["cancellation"]["reason"] == "ill"
    assert [t["status"] for t in data["timeline"]] == ["pending", "cancelled"]


def test_status_only_cancellation_can_be_reopened_then_cancelled(client, tourist, seller, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    assert _set_status(client, seller, booking["id"], "cancelled").status_code == 200
    assert _set_status(client, seller, booking["id"], "confirmed").status_code == 200
    r = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "changed plans"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["booking"]["cancellation"]["reason"] == "changed plans"


def test_cancel_accepts_put_and_empty_post(client, tourist, product):
    headers = bearer(token_for(tourist))
    first = _create(client, headers, product.id)
    r = client.put(f"{API}/bookings/{first['id']}/cancel", json={"reason": "x"}, headers=headers)
    assert r.status_code == 200

    second = _create(client, headers, product.id)
    r = client.post(f"{API}/bookings/{second['id']}/cancel", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["booking"]["timeline"][-1]["note"] == "Cancelled"


def test_each_transition_adds_one_timeline_entry(client, tourist, seller, product):
    booking = _create(client, bearer(token_for(tourist)), product.id)
    steps = ["confirmed", "in_progress", "completed"]
    for n, status in enumerate(steps, start=1):
        data = _set_status(client, seller, booking["id"], status).json()["data"]
        assert len(data["timeline"]) == n + 1
        assert data["timeline"][-1]["status"] == data["status"] == status
    assert [t["status"] for t in data["timeline"]] == ["pending"] + steps
    assert {t["updatedByKind"] for t in data["timeline"]} == {"registered"}


def test_rejected_second_review_leaves_first_intact(client, tourist, seller, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    _set_status(client, seller, booking["id"], "completed")
    first = client.post(f"{API}/bookings/{booking['id']}/review", json={"rating": 4, "comment": "Lovely"},
                        headers=headers).json()["data"]["review"]

    r = client.post(f"{API}/bookings/{booking['id']}/review", json={"rating": 1, "comment": "Changed my mind"},
                    headers=headers)
    assert r.status_code == 400
    after = client.get(f"{API}/bookings/{booking['id']}", headers=headers).json()["data"]["review"]
    assert (after["rating"], after["comment"], after["submittedAt"]) == (first["rating"], first["comment"], first["submittedAt"])
    assert client.get(f"{API}/products/{product.id}").json()["data"]["rating"]["count"] == 1


def test_confirm_payment_records_method(client, tourist, product):
    headers = bearer(token_for(tourist))
    booking = _create(client, headers, product.id)
    assert booking["payment"]["method"] == "upi"
    r = client.post(f"{API}/payments/confirm-payment",
                    json={"bookingId": booking["id"], "paymentIntentId": "pi_card", "method": "card"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["payment"]["method"] == "card"
    r = client.post(f"{API}/payments/confirm-payment",
                    json={"bookingId": booking["id"], "paymentIntentId": "pi_card", "method": "bitcoin"}, headers=headers)
    assert r.status_code == 400
