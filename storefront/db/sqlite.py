from __future__ import annotations

import os
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple


def _connect(db_path: str) -> sqlite3.Connection:
    d = os.path.dirname(db_path)
    if d:
        os.makedirs(d, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def _now() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def init_db(db_path: str) -> None:
    conn = _connect(db_path)
    try:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            conn.executescript(f.read())
        conn.commit()
    finally:
        conn.close()


# ---------------- menu items ----------------

_MENU_COLUMNS = "id, name, description, category, price, image, created_at, updated_at"


def list_menu_items(db_path: str) -> List[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            f"SELECT {_MENU_COLUMNS} FROM menu_items ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [dict(r) for r in rows]
    finally:
        conn.close()


def get_menu_item(db_path: str, item_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        row = conn.execute(f"SELECT {_MENU_COLUMNS} FROM menu_items WHERE id = ?", (item_id,)).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def add_menu_item(
    db_path: str,
    name: str,
    description: str,
    category: str,
    price: float,
    image: Optional[str],
) -> Dict[str, Any]:
    item_id = uuid.uuid4().hex
    now = _now()
    conn = _connect(db_path)
    try:
        conn.execute(
            f"INSERT INTO menu_items({_MENU_COLUMNS}) VALUES(?,?,?,?,?,?,?,?)",
            (item_id, name, description, category, float(price), image, now, now),
        )
        conn.commit()
    finally:
        conn.close()
    return get_menu_item(db_path, item_id)


def update_menu_item(
    db_path: str,
    item_id: str,
    name: str,
    description: str,
    category: str,
    price: float,
    image: Optional[str],
) -> Optional[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        cur = conn.execute(
            """
            UPDATE menu_items
            SET name=?, description=?, category=?, price=?, image=?, updated_at=?
            WHERE id=?
            """,
            (name, description, category, float(price), image, _now(), item_id),
        )
        conn.commit()
        if cur.rowcount == 0:
            return None
    finally:
        conn.close()
    return get_menu_item(db_path, item_id)


def delete_menu_item(db_path: str, item_id: str) -> bool:
    conn = _connect(db_path)
    try:
        cur = conn.execute("DELETE FROM menu_items WHERE id = ?", (item_id,))
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


# ---------------- orders ----------------

def create_order(
    db_path: str,
    user_id: str,
    amount: float,
    payment_intent_id: Optional[str],
    items: Iterable[Tuple[str, int]],
) -> Tuple[int, bool]:
    """
    Writes the order and its lines in one transaction.
    A repeated delivery with the same payment_intent_id does not create a second order.
    Returns (order_id, created).
    """
    conn = _connect(db_path)
    try:
        conn.execute("BEGIN")
        if payment_intent_id:
            row = conn.execute(
                "SELECT id FROM orders WHERE payment_intent_id = ?", (payment_intent_id,)
            ).fetchone()
            if row:
                conn.execute("ROLLBACK")
                return int(row["id"]), False

        cur = conn.execute(
            "INSERT INTO orders(user_id, amount, payment_intent_id, created_at) VALUES(?,?,?,?)",
            (user_id, float(amount), payment_intent_id, _now()),
        )
        order_id = int(cur.lastrowid)
        conn.executemany(
            "INSERT INTO order_items(order_id, menu_item_id, quantity) VALUES(?,?,?)",
            [(order_id, menu_item_id, int(qty)) for menu_item_id, qty in items],
        )
        conn.commit()
        return order_id, True
    except Exception:
        # no-op when BEGIN itself failed
        conn.rollback()
        raise
    finally:
        conn.close()


def _order_items(conn: sqlite3.Connection, order_id: int) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT oi.menu_item_id, oi.quantity,
               m.name, m.category, m.image, m.price
        FROM order_items oi
        LEFT JOIN menu_items m ON m.id = oi.menu_item_id
        WHERE oi.order_id = ?
        ORDER BY oi.id
        """,
        (order_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def get_order(db_path: str, order_id: int) -> Optional[Dict[str, Any]]:
    conn = _connect(db_path)
    try:
        row = conn.execute(
            "SELECT id, user_id, amount, payment_intent_id, created_at FROM orders WHERE id = ?",
            (order_id,),
        ).fetchone()
        if not row:
            return None
        order = dict(row)
        order["items"] = _order_items(conn, order_id)
        return order
    finally:
        conn.close()


def list_orders(db_path: str, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    sql = "SELECT id, user_id, amount, payment_intent_id, created_at FROM orders"
    params: List[Any] = []
    if user_id is not None:
        sql += " WHERE user_id = ?"
        params.append(user_id)
    sql += " ORDER BY created_at DESC, id DESC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    conn = _connect(db_path)
    try:
        orders = [dict(r) for r in conn.execute(sql, params).fetchall()]
        for o in orders:
            o["items"] = _order_items(conn, o["id"])
        return orders
    finally:
        conn.close()


# ---------------- client storage ----------------

def storage_get(db_path: str, client_id: str, key: str) -> Optional[str]:
    conn = _connect(db_path)
    try:
        row = conn.execute(
            "SELECT value FROM client_storage WHERE client_id=? AND key=?",
            (client_id, key),
        ).fetchone()
        return row["value"] if row else None
    finally:
        conn.close()


def storage_set(db_path: str, client_id: str, key: str, value: str) -> None:
    conn = _connect(db_path)
    try:
        conn.execute(
            "INSERT INTO client_storage(client_id, key, value, updated_at) VALUES(?,?,?,?) "
            "ON CONFLICT(client_id, key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
            (client_id, key, value, _now()),
        )
        conn.commit()
    finally:
        conn.close()


def storage_remove(db_path: str, client_id: str, key: str) -> None:
    conn = _connect(db_path)
    try:
        conn.execute("DELETE FROM client_storage WHERE client_id=? AND key=?", (client_id, key))
        conn.commit()
    finally:
        conn.close()
