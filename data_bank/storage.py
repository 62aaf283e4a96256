"""
Dataset Storage Module

Provides an abstract dataset interface and implementations for in-memory
(testing) and SQLite (persistence). Reports only ever read through the
accessors; the add_* loaders exist to materialize a dataset. All monetary
values are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Union
import sqlite3
import threading
from pathlib import Path
from contextlib import contextmanager

from .models import Region, CustomerNode, CustomerTransaction


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS regions (
        region_id INTEGER PRIMARY KEY,
        region_name TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS customer_nodes (
        customer_id INTEGER,
        region_id INTEGER,
        node_id INTEGER,
        start_date TEXT,
        end_date TEXT,
        FOREIGN KEY (region_id) REFERENCES regions(region_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS customer_transactions (
        customer_id INTEGER,
        txn_date TEXT,
        txn_type TEXT,
        txn_amount TEXT
    )
    """,
)


class DatasetInterface(ABC):
    """Abstract interface for the three input relations"""
    
    @abstractmethod
    def regions(self) -> List[Region]:
        """All regions"""
        pass
    
    @abstractmethod
    def customer_nodes(self) -> List[CustomerNode]:
        """All customer node allocations in input order"""
        pass
    
    @abstractmethod
    def transactions(self) -> List[CustomerTransaction]:
        """All customer transactions in input order"""
        pass
    
    @abstractmethod
    def add_regions(self, regions: Iterable[Region]) -> None:
        pass
    
    @abstractmethod
    def add_customer_nodes(self, nodes: Iterable[CustomerNode]) -> None:
        pass
    
    @abstractmethod
    def add_transactions(self, transactions: Iterable[CustomerTransaction]) -> None:
        pass
    
    @abstractmethod
    def close(self) -> None:
        """Close dataset connection"""
        pass
    
    def begin_transaction(self) -> None:
        """Start a load batch (default no-op)"""
        pass
    
    def commit(self) -> None:
        """Commit current load batch (default no-op)"""
        pass
    
    def rollback(self) -> None:
        """Rollback current load batch (default no-op)"""
        pass
    
    @contextmanager
    def atomic(self):
        """Context manager for atomic loads"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


class InMemoryDataset(DatasetInterface):
    """In-memory dataset for testing and small extracts"""
    
    def __init__(
        self,
        regions: Iterable[Region] = (),
        customer_nodes: Iterable[CustomerNode] = (),
        transactions: Iterable[CustomerTransaction] = ()
    ):
        self._regions: List[Region] = list(regions)
        self._customer_nodes: List[CustomerNode] = list(customer_nodes)
        self._transactions: List[CustomerTransaction] = list(transactions)
        self._lock = threading.RLock()
    
    def regions(self) -> List[Region]:
        with self._lock:
            return list(self._regions)
    
    def customer_nodes(self) -> List[CustomerNode]:
        with self._lock:
            return list(self._customer_nodes)
    
    def transactions(self) -> List[CustomerTransaction]:
        with self._lock:
            return list(self._transactions)
    
    def add_regions(self, regions: Iterable[Region]) -> None:
        with self._lock:
            self._regions.extend(regions)
    
    def add_customer_nodes(self, nodes: Iterable[CustomerNode]) -> None:
        with self._lock:
            self._customer_nodes.extend(nodes)
    
    def add_transactions(self, transactions: Iterable[CustomerTransaction]) -> None:
        with self._lock:
            self._transactions.extend(transactions)
    
    def close(self) -> None:
        """Close dataset (no-op for in-memory)"""
        pass


class SQLiteDataset(DatasetInterface):
    """SQLite-backed dataset using the Data Bank table layout"""
    
    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        
        with self._lock:
            for statement in SCHEMA:
                self._connection.execute(statement)
            self._connection.commit()
    
    def _fetch(self, query: str) -> List[sqlite3.Row]:
        with self._lock:
            return self._connection.execute(query).fetchall()
    
    def _insert(self, query: str, rows: List[tuple]) -> None:
        with self._lock:
            self._connection.executemany(query, rows)
            
            # Only commit if not in transaction
            if not self._in_transaction:
                self._connection.commit()
    
    def regions(self) -> List[Region]:
        rows = self._fetch("SELECT region_id, region_name FROM regions ORDER BY rowid")
        return [Region.from_dict(dict(row)) for row in rows]
    
    def customer_nodes(self) -> List[CustomerNode]:
        rows = self._fetch("""
            SELECT customer_id, region_id, node_id, start_date, end_date
            FROM customer_nodes ORDER BY rowid
        """)
        return [CustomerNode.from_dict(dict(row)) for row in rows]
    
    def transactions(self) -> List[CustomerTransaction]:
        rows = self._fetch("""
            SELECT customer_id, txn_date, txn_type, txn_amount
            FROM customer_transactions ORDER BY rowid
        """)
        return [CustomerTransaction.from_dict(dict(row)) for row in rows]
    
    def add_regions(self, regions: Iterable[Region]) -> None:
        self._insert(
            "INSERT INTO regions (region_id, region_name) VALUES (?, ?)",
            [(r.region_id, r.region_name) for r in regions]
        )
    
    def add_customer_nodes(self, nodes: Iterable[CustomerNode]) -> None:
        self._insert(
            """
            INSERT INTO customer_nodes (customer_id, region_id, node_id, start_date, end_date)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (n.customer_id, n.region_id, n.node_id,
                 n.start_date.isoformat(), n.end_date.isoformat())
                for n in nodes
            ]
        )
    
    def add_transactions(self, transactions: Iterable[CustomerTransaction]) -> None:
        self._insert(
            """
            INSERT INTO customer_transactions (customer_id, txn_date, txn_type, txn_amount)
            VALUES (?, ?, ?, ?)
            """,
            [
                (t.customer_id, t.txn_date.isoformat(), t.txn_type, str(t.txn_amount))
                for t in transactions
            ]
        )
    
    def begin_transaction(self) -> None:
        """Start a load batch"""
        with self._lock:
            if not self._in_transaction:
                # isolation_level='DEFERRED' opens the transaction on first write
                self._in_transaction = True
    
    def commit(self) -> None:
        """Commit current load batch"""
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False
    
    def rollback(self) -> None:
        """Rollback current load batch"""
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False
    
    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
