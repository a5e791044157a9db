OPERATOR_ROOM = "operator-room"


def customer_room(customer_id: str) -> str:
    return f"user:{customer_id}"
