"""Owner-scoped rollup queries over the `documents` table.

A `RollupQuery` describes one analytics request (owner filter, optional date
window and status, group-by-month) and renders the SQL the record store runs
for it. JSON paths are always bound as parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


def json_path(field: str) -> str:
    """Translate a dotted document field into a SQLite JSON path."""
    return "$." + field


@dataclass
class RollupQuery:
    """Aggregation over one owner's documents in a collection.

    Attributes:
        collection: Document collection name.
        owner: Identity whose documents are aggregated.
        since: Inclusive lower bound on `created_at` (unix seconds).
        until: Inclusive upper bound on `created_at` (unix seconds).
        status: Only include documents whose `status` field equals this.
        count_status: Also count documents whose `status` equals this.
        average_of: Dotted field to average.
        sum_of: Dotted field to sum.
        distinct_of: Dotted fields whose distinct values (array elements
            flattened) are collected.
        newest_first: Order the monthly series newest month first.
        month_limit: Maximum number of months returned.
    """

    collection: str
    owner: str
    since: Optional[float] = None
    until: Optional[float] = None
    status: Optional[str] = None
    count_status: Optional[str] = None
    average_of: Optional[str] = None
    sum_of: Optional[str] = None
    distinct_of: Sequence[str] = ()
    newest_first: bool = False
    month_limit: Optional[int] = None

    def where(self, table: str = "documents") -> Tuple[str, List[object]]:
        clauses = [f"{table}.collection = ?", f"{table}.owner = ?"]
        params: List[object] = [self.collection, self.owner]
        if self.since is not None:
            clauses.append(f"{table}.created_at >= ?")
            params.append(self.since)
        if self.until is not None:
            clauses.append(f"{table}.created_at <= ?")
            params.append(self.until)
        if self.status is not None:
            clauses.append(f"json_extract({table}.body, '$.status') = ?")
            params.append(self.status)
        return " AND ".join(clauses), params

    def _metric_columns(self) -> Tuple[List[str], List[str], List[object]]:
        """Return (select expressions, output names, select params)."""
        exprs: List[str] = []
        names: List[str] = []
        params: List[object] = []
        if self.average_of:
            exprs.append("AVG(json_extract(body, ?))")
            names.append("average")
            params.append(json_path(self.average_of))
        if self.sum_of:
            exprs.append("TOTAL(json_extract(body, ?))")
            names.append("sum")
            params.append(json_path(self.sum_of))
        return exprs, names, params

    def summary_sql(self) -> Tuple[str, Tuple[object, ...], List[str]]:
        """SQL for the single overall row, with the names of its columns."""
        exprs = ["COUNT(*)"]
        names = ["total"]
        params: List[object] = []
        if self.count_status:
            exprs.append("TOTAL(CASE WHEN json_extract(body, '$.status') = ? THEN 1 ELSE 0 END)")
            names.append("status_count")
            params.append(self.count_status)
        metric_exprs, metric_names, metric_params = self._metric_columns()
        exprs += metric_exprs
        names += metric_names
        params += metric_params

        where_sql, where_params = self.where()
        sql = f"SELECT {', '.join(exprs)} FROM documents WHERE {where_sql}"
        return sql, tuple(params + where_params), names

    def monthly_sql(self) -> Tuple[str, Tuple[object, ...], List[str]]:
        """SQL for the per-month series, with the names of its columns."""
        exprs = [
            "CAST(strftime('%Y', created_at, 'unixepoch') AS INTEGER) AS year",
            "CAST(strftime('%m', created_at, 'unixepoch') AS INTEGER) AS month",
            "COUNT(*)",
        ]
        names = ["year", "month", "count"]
        metric_exprs, metric_names, params = self._metric_columns()
        exprs += metric_exprs
        names += metric_names

        where_sql, where_params = self.where()
        direction = "DESC" if self.newest_first else "ASC"
        sql = (
            f"SELECT {', '.join(exprs)} FROM documents WHERE {where_sql} "
            f"GROUP BY year, month ORDER BY year {direction}, month {direction}"
        )
        all_params = list(params) + where_params
        if self.month_limit:
            sql += " LIMIT ?"
            all_params.append(self.month_limit)
        return sql, tuple(all_params), names

    def distinct_sql(self, field: str) -> Tuple[str, Tuple[object, ...]]:
        """SQL collecting the distinct values of `field`.

        Arrays are flattened through `json_each`, so a list-valued field
        yields its elements rather than the list itself.
        """
        where_sql, where_params = self.where("d")
        sql = (
            "SELECT DISTINCT j.value FROM documents AS d, json_each(d.body, ?) AS j "
            f"WHERE {where_sql} AND j.value IS NOT NULL ORDER BY j.value"
        )
        return sql, tuple([json_path(field)] + where_params)
