from __future__ import annotations

import logging
import shutil
import sqlite3
import uuid
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from retailpos.domain.caisse import ACTIVE, CaisseSession
from retailpos.domain.errors import (
    InsufficientStockError,
    NotFoundError,
    SessionAlreadyActiveError,
    StockShortage,
    ValidationError,
)
from retailpos.domain.models import (
    Product,
    Promotion,
    RecordedSale,
    SaleHeader,
    SaleTransaction,
    SessionDetails,
    SessionStatistics,
    SessionSummary,
)
from retailpos.domain.money import ZERO, from_cents, quantize, to_cents

log = logging.getLogger(__name__)

_SESSION_COLUMNS = """
    id, user_id, session_name, opening_cents, status, opened_at, description,
    closed_at, closing_cents, expected_cents, difference_cents, closing_notes
"""


def _now_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat(sep=" ")


class SqliteRepository:
    """Local POS backend.

    Money columns hold integer cents so that SQL sums stay exact.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        backup_path = self._create_pre_migration_backup()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_catalog_and_sales),
                (2, self._migration_v2_caisse_sessions),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_pre_migration_backup(backup_path)
            raise RuntimeError(
                "Database migration failed. Original database restored from automatic backup."
            ) from exc
        finally:
            conn.close()
        if backup_path is not None:
            backup_path.unlink(missing_ok=True)

    def _create_pre_migration_backup(self) -> Path | None:
        db_file = Path(self.db_path)
        if not db_file.exists() or db_file.stat().st_size == 0:
            return None
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{datetime.now().strftime('%Y%m%d%H%M%S')}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _restore_pre_migration_backup(self, backup_path: Path | None) -> None:
        if backup_path is None or not backup_path.exists():
            return
        shutil.copy2(backup_path, self.db_path)

    def _migration_v1_catalog_and_sales(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sku TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            barcode TEXT,
            category TEXT,
            price_cents INTEGER NOT NULL CHECK(price_cents >= 0),
            current_stock INTEGER NOT NULL DEFAULT 0 CHECK(current_stock >= 0),
            is_active INTEGER NOT NULL DEFAULT 1
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT,
            loyalty_points INTEGER NOT NULL DEFAULT 0 CHECK(loyalty_points >= 0),
            is_active INTEGER NOT NULL DEFAULT 1
        )
        """
        )

        # value is a decimal string: percentages such as 12.5 are not cents
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS promotions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('percentage','fixed')),
            value TEXT NOT NULL,
            min_quantity INTEGER NOT NULL DEFAULT 0,
            start_date TEXT,
            end_date TEXT,
            max_uses INTEGER,
            current_uses INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS settings (
            setting_key TEXT PRIMARY KEY,
            setting_value TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_number TEXT UNIQUE,
            customer_id INTEGER,
            cashier_id INTEGER,
            caisse_session_id TEXT,
            subtotal_cents INTEGER NOT NULL,
            discount_cents INTEGER NOT NULL DEFAULT 0,
            tax_cents INTEGER NOT NULL DEFAULT 0,
            total_cents INTEGER NOT NULL CHECK(total_cents >= 0),
            amount_paid_cents INTEGER NOT NULL,
            change_cents INTEGER NOT NULL DEFAULT 0,
            payment_method TEXT NOT NULL CHECK(payment_method IN ('cash','card','mobile')),
            notes TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY(customer_id) REFERENCES customers(id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sale_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            unit_price_cents INTEGER NOT NULL CHECK(unit_price_cents >= 0),
            FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES products(id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sale_promotions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_id INTEGER NOT NULL,
            promotion_id INTEGER NOT NULL,
            discount_cents INTEGER NOT NULL CHECK(discount_cents >= 0),
            FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE,
            FOREIGN KEY(promotion_id) REFERENCES promotions(id)
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS stock_movements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL,
            movement_type TEXT NOT NULL CHECK(movement_type IN ('in','out','adjustment')),
            quantity INTEGER NOT NULL,
            previous_stock INTEGER NOT NULL,
            new_stock INTEGER NOT NULL CHECK(new_stock >= 0),
            reference TEXT,
            user_id INTEGER,
            created_at TEXT NOT NULL,
            FOREIGN KEY(product_id) REFERENCES products(id)
        )
        """
        )

    def _migration_v2_caisse_sessions(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS caisse_sessions (
                id TEXT PRIMARY KEY,
                user_id INTEGER NOT NULL,
                session_name TEXT NOT NULL,
                description TEXT,
                opening_cents INTEGER NOT NULL CHECK(opening_cents >= 0),
                status TEXT NOT NULL CHECK(status IN ('active','closed')),
                opened_at TEXT NOT NULL,
                closed_at TEXT,
                closing_cents INTEGER CHECK(closing_cents >= 0),
                expected_cents INTEGER,
                difference_cents INTEGER,
                closing_notes TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS ux_caisse_one_active_per_user
            ON caisse_sessions(user_id) WHERE status = 'active'
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sales_caisse_session ON sales(caisse_session_id)")

    # ---------- Products ----------
    def add_product(
        self,
        sku: str,
        name: str,
        price: Decimal,
        stock: int,
        barcode: Optional[str] = None,
        category: Optional[str] = None,
    ) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO products (sku, name, barcode, category, price_cents, current_stock)
            VALUES (?, ?, ?, ?, ?, ?)
        """,
            (sku, name, barcode, category, to_cents(price), int(stock)),
        )
        pid = cur.lastrowid
        conn.commit()
        conn.close()
        return int(pid)

    def set_stock(self, product_id: int, stock: int, user_id: Optional[int] = None, reference: str = "manual") -> None:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute("SELECT current_stock FROM products WHERE id=?", (int(product_id),))
            row = cur.fetchone()
            if not row:
                raise NotFoundError("Product not found.")
            previous = int(row[0])
            cur.execute("UPDATE products SET current_stock=? WHERE id=?", (int(stock), int(product_id)))
            cur.execute(
                """
                INSERT INTO stock_movements (product_id, movement_type, quantity, previous_stock, new_stock, reference, user_id, created_at)
                VALUES (?, 'adjustment', ?, ?, ?, ?, ?, ?)
                """,
                (int(product_id), int(stock) - previous, previous, int(stock), reference, user_id, _now_iso()),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _row_to_product(r) -> Product:
        return Product(
            id=int(r[0]),
            sku=str(r[1]),
            name=str(r[2]),
            barcode=r[3],
            category=r[4],
            unit_price=from_cents(r[5]),
            current_stock=int(r[6]),
        )

    def list_products(self) -> list[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, sku, name, barcode, category, price_cents, current_stock
            FROM products
            WHERE is_active = 1
            ORDER BY name
        """
        )
        rows = cur.fetchall()
        conn.close()
        return [self._row_to_product(r) for r in rows]

    def get_product(self, product_id: int) -> Optional[Product]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, sku, name, barcode, category, price_cents, current_stock
            FROM products
            WHERE is_active=1 AND id=?
        """,
            (int(product_id),),
        )
        r = cur.fetchone()
        conn.close()
        return self._row_to_product(r) if r else None

    def stock_levels(self, product_ids: Iterable[int]) -> dict[int, int]:
        ids = sorted({int(pid) for pid in product_ids})
        if not ids:
            return {}
        conn = self._conn()
        cur = conn.cursor()
        placeholders = ",".join("?" for _ in ids)
        cur.execute(
            f"SELECT id, current_stock FROM products WHERE is_active=1 AND id IN ({placeholders})",
            ids,
        )
        rows = cur.fetchall()
        conn.close()
        return {int(r[0]): int(r[1]) for r in rows}

    # ---------- Customers ----------
    def add_customer(self, name: str, email: Optional[str] = None, loyalty_points: int = 0) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO customers (name, email, loyalty_points) VALUES (?, ?, ?)",
            (name, email, int(loyalty_points)),
        )
        cid = cur.lastrowid
        conn.commit()
        conn.close()
        return int(cid)

    def get_loyalty_points(self, customer_id: int) -> Optional[int]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT loyalty_points FROM customers WHERE id=?", (int(customer_id),))
        row = cur.fetchone()
        conn.close()
        return int(row[0]) if row else None

    # ---------- Promotions ----------
    def add_promotion(
        self,
        name: str,
        type: str,
        value: Decimal,
        min_quantity: int = 0,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        max_uses: Optional[int] = None,
        is_active: bool = True,
    ) -> int:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO promotions (name, type, value, min_quantity, start_date, end_date, max_uses, is_active)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                name,
                type,
                str(value),
                int(min_quantity),
                start_date.isoformat() if start_date else None,
                end_date.isoformat() if end_date else None,
                max_uses,
                1 if is_active else 0,
            ),
        )
        pid = cur.lastrowid
        conn.commit()
        conn.close()
        return int(pid)

    def list_promotions(self) -> list[Promotion]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, name, type, value, min_quantity, start_date, end_date, max_uses, current_uses, is_active
            FROM promotions
            ORDER BY id DESC
            """
        )
        rows = cur.fetchall()
        conn.close()
        return [
            Promotion(
                id=int(r[0]),
                name=str(r[1]),
                type=str(r[2]),
                value=Decimal(r[3]),
                min_quantity=int(r[4]),
                start_date=date.fromisoformat(r[5]) if r[5] else None,
                end_date=date.fromisoformat(r[6]) if r[6] else None,
                max_uses=int(r[7]) if r[7] is not None else None,
                current_uses=int(r[8]),
                is_active=bool(r[9]),
            )
            for r in rows
        ]

    # ---------- Settings ----------
    def set_setting(self, key: str, value: object) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO settings (setting_key, setting_value) VALUES (?, ?)
            ON CONFLICT(setting_key) DO UPDATE SET setting_value=excluded.setting_value
        """,
            (key, str(value)),
        )
        conn.commit()
        conn.close()

    def _settings(self, keys: tuple[str, ...]) -> dict:
        conn = self._conn()
        cur = conn.cursor()
        placeholders = ",".join("?" for _ in keys)
        cur.execute(f"SELECT setting_key, setting_value FROM settings WHERE setting_key IN ({placeholders})", keys)
        rows = cur.fetchall()
        conn.close()
        return {str(k): v for k, v in rows}

    def get_tax_settings(self) -> dict:
        return self._settings(("default_tax_rate", "tax_inclusive"))

    def get_system_settings(self) -> dict:
        return self._settings(("tax_rate", "currency", "company_name"))

    # ---------- Sales ----------
    def create_sale(self, sale: SaleTransaction, actor_user_id: int | None = None) -> RecordedSale:
        """Commit a sale, re-checking stock inside the write transaction."""
        conn = self._conn()
        cur = conn.cursor()
        created_at = _now_iso()
        try:
            cur.execute("BEGIN IMMEDIATE")

            requested: dict[int, int] = {}
            for it in sale.items:
                requested[it.product_id] = requested.get(it.product_id, 0) + it.quantity

            shortages = []
            previous_stock: dict[int, int] = {}
            for pid, qty in requested.items():
                cur.execute("SELECT name, current_stock FROM products WHERE id=? AND is_active=1", (pid,))
                row = cur.fetchone()
                if not row:
                    raise NotFoundError(f"Product {pid} not found.")
                previous_stock[pid] = int(row[1])
                if int(row[1]) < qty:
                    shortages.append(StockShortage(pid, str(row[0]), int(row[1]), qty))
            if shortages:
                raise InsufficientStockError(shortages)

            if sale.customer_id is not None:
                cur.execute("SELECT id FROM customers WHERE id=? AND is_active=1", (sale.customer_id,))
                if not cur.fetchone():
                    raise NotFoundError("Customer not found.")

            if sale.caisse_session_id is not None:
                cur.execute("SELECT status FROM caisse_sessions WHERE id=?", (sale.caisse_session_id,))
                row = cur.fetchone()
                if not row:
                    raise NotFoundError("Caisse session not found.")
                if row[0] != ACTIVE:
                    raise ValidationError("Caisse session is closed.")

            cur.execute(
                """
                INSERT INTO sales (
                    customer_id, cashier_id, caisse_session_id, subtotal_cents, discount_cents, tax_cents,
                    total_cents, amount_paid_cents, change_cents, payment_method, notes, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sale.customer_id,
                    actor_user_id,
                    sale.caisse_session_id,
                    to_cents(sale.subtotal),
                    to_cents(sale.discount_amount),
                    to_cents(sale.tax_amount),
                    to_cents(sale.total_amount),
                    to_cents(sale.amount_paid),
                    to_cents(sale.change_given),
                    sale.payment_method,
                    sale.notes,
                    created_at,
                ),
            )
            sale_id = int(cur.lastrowid)
            sale_number = f"S{datetime.now():%y%m%d}-{sale_id:06d}"
            cur.execute("UPDATE sales SET sale_number=? WHERE id=?", (sale_number, sale_id))

            for it in sale.items:
                cur.execute(
                    "INSERT INTO sale_items (sale_id, product_id, quantity, unit_price_cents) VALUES (?, ?, ?, ?)",
                    (sale_id, it.product_id, it.quantity, to_cents(it.unit_price)),
                )

            for pid, qty in requested.items():
                new_stock = previous_stock[pid] - qty
                cur.execute("UPDATE products SET current_stock=? WHERE id=?", (new_stock, pid))
                cur.execute(
                    """
                    INSERT INTO stock_movements (product_id, movement_type, quantity, previous_stock, new_stock, reference, user_id, created_at)
                    VALUES (?, 'out', ?, ?, ?, ?, ?, ?)
                    """,
                    (pid, qty, previous_stock[pid], new_stock, sale_number, actor_user_id, created_at),
                )

            promo = sale.applied_promotion
            if promo is not None:
                cur.execute(
                    "INSERT INTO sale_promotions (sale_id, promotion_id, discount_cents) VALUES (?, ?, ?)",
                    (sale_id, promo.promotion_id, to_cents(promo.discount_amount)),
                )
                cur.execute("UPDATE promotions SET current_uses = current_uses + 1 WHERE id=?", (promo.promotion_id,))

            # one loyalty point per whole currency unit spent
            earned = int(sale.total_amount)
            if sale.customer_id is not None and earned > 0:
                cur.execute(
                    "UPDATE customers SET loyalty_points = loyalty_points + ? WHERE id=?",
                    (earned, sale.customer_id),
                )

            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return RecordedSale(id=sale_id, sale_number=sale_number, created_at=created_at, transaction=sale)

    def list_session_sales(self, session_id: str) -> list[SaleHeader]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, sale_number, created_at, payment_method, total_cents, customer_id
            FROM sales
            WHERE caisse_session_id = ?
            ORDER BY created_at DESC, id DESC
        """,
            (session_id,),
        )
        rows = cur.fetchall()
        conn.close()
        return [
            SaleHeader(
                id=int(r[0]),
                sale_number=str(r[1]),
                created_at=str(r[2]),
                payment_method=str(r[3]),
                total_amount=from_cents(r[4]),
                customer_id=(int(r[5]) if r[5] is not None else None),
            )
            for r in rows
        ]

    # ---------- Caisse sessions ----------
    @staticmethod
    def _row_to_session(r) -> CaisseSession:
        return CaisseSession(
            id=str(r[0]),
            user_id=int(r[1]),
            session_name=str(r[2]),
            opening_amount=from_cents(r[3]),
            status=str(r[4]),
            opened_at=str(r[5]),
            description=r[6],
            closed_at=r[7],
            closing_amount=from_cents(r[8]) if r[8] is not None else None,
            expected_amount=from_cents(r[9]) if r[9] is not None else None,
            difference=from_cents(r[10]) if r[10] is not None else None,
            closing_notes=r[11],
        )

    def create_session(
        self, user_id: int, session_name: str, opening_amount: Decimal, description: Optional[str]
    ) -> CaisseSession:
        session_id = str(uuid.uuid4())
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO caisse_sessions (id, user_id, session_name, description, opening_cents, status, opened_at)
                VALUES (?, ?, ?, ?, ?, 'active', ?)
                """,
                (session_id, int(user_id), session_name, description, to_cents(opening_amount), _now_iso()),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise SessionAlreadyActiveError(
                "You already have an active caisse session. Please close it before opening a new one."
            ) from e
        finally:
            conn.close()
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError("Caisse session not found.")
        return session

    def get_session(self, session_id: str) -> Optional[CaisseSession]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(f"SELECT {_SESSION_COLUMNS} FROM caisse_sessions WHERE id=?", (session_id,))
        r = cur.fetchone()
        conn.close()
        return self._row_to_session(r) if r else None

    def get_active_session(self, user_id: int) -> Optional[CaisseSession]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_SESSION_COLUMNS} FROM caisse_sessions WHERE user_id=? AND status='active'",
            (int(user_id),),
        )
        r = cur.fetchone()
        conn.close()
        return self._row_to_session(r) if r else None

    def list_sessions(self, user_id: int) -> list[CaisseSession]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_SESSION_COLUMNS} FROM caisse_sessions WHERE user_id=? ORDER BY opened_at DESC",
            (int(user_id),),
        )
        rows = cur.fetchall()
        conn.close()
        return [self._row_to_session(r) for r in rows]

    def session_summary(self, session_id: str) -> SessionSummary:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            SELECT
                COUNT(*),
                COALESCE(SUM(total_cents), 0),
                COALESCE(SUM(CASE WHEN payment_method = 'cash' THEN total_cents ELSE 0 END), 0),
                COALESCE(SUM(CASE WHEN payment_method = 'card' THEN total_cents ELSE 0 END), 0),
                COALESCE(SUM(CASE WHEN payment_method = 'mobile' THEN total_cents ELSE 0 END), 0)
            FROM sales
            WHERE caisse_session_id = ?
        """,
            (session_id,),
        )
        count, total, cash, card, mobile = cur.fetchone()
        conn.close()
        total_amount = from_cents(total)
        average = quantize(total_amount / int(count)) if count else ZERO
        return SessionSummary(
            transactions_count=int(count),
            total_revenue=total_amount,
            cash_revenue=from_cents(cash),
            card_revenue=from_cents(card),
            mobile_revenue=from_cents(mobile),
            average_transaction=average,
        )

    def session_statistics(self, session_id: str) -> SessionStatistics:
        return self.session_summary(session_id).statistics

    def session_details(self, session_id: str) -> Optional[SessionDetails]:
        session = self.get_session(session_id)
        if session is None:
            return None
        return SessionDetails(
            session=session,
            summary=self.session_summary(session_id),
            sales=tuple(self.list_session_sales(session_id)),
        )

    def save_closed_session(self, session: CaisseSession) -> CaisseSession:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE caisse_sessions
            SET status='closed', closing_cents=?, expected_cents=?, difference_cents=?, closing_notes=?, closed_at=?
            WHERE id=? AND status='active'
            """,
            (
                to_cents(session.closing_amount),
                to_cents(session.expected_amount),
                to_cents(session.difference),
                session.closing_notes,
                session.closed_at,
                session.id,
            ),
        )
        changed = cur.rowcount > 0
        conn.commit()
        conn.close()
        if not changed:
            raise ValidationError("Active session not found.")
        log.debug("caisse_session_persisted id=%s", session.id)
        stored = self.get_session(session.id)
        if stored is None:
            raise NotFoundError("Caisse session not found.")
        return stored
