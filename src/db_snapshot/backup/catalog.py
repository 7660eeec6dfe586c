"""Table catalog: the FK dependency graph that drives snapshot ordering.

Tables are declared with their FK edges; the catalog sorts them once at
construction so that every table follows all tables it references.  Import
order is a hard requirement (the integrity filter needs parent keys before
children are filtered); export uses the same order for simplicity.

Usage:
    from db_snapshot.backup.catalog import TableCatalog
    from db_snapshot.backup.models import TableDef

    catalog = TableCatalog([
        TableDef(name="books", depends_on=["authors"]),
        TableDef(name="authors"),
    ])
    catalog.order
    # ['authors', 'books']
"""

from collections.abc import Iterable, Iterator

from db_snapshot.backup.errors import CatalogCycleError, UnknownTableError
from db_snapshot.backup.models import ForeignKey, TableDef


def _topological_sort(tables: list[TableDef]) -> list[str]:
    """Sort tables so parents come before children.

    Depth-first over declaration order, so an already consistent
    declaration comes back unchanged.

    Raises:
        UnknownTableError: If an edge names an undeclared table.
        CatalogCycleError: If the declared edges contain a cycle.
    """
    by_name = {t.name: t for t in tables}

    for table in tables:
        for dep in table.depends_on:
            if dep not in by_name:
                raise UnknownTableError(
                    f"Table '{table.name}' depends on undeclared table '{dep}'"
                )
        if table.integrity_ref and table.integrity_ref.table not in table.depends_on:
            raise UnknownTableError(
                f"Table '{table.name}' checks keys of '{table.integrity_ref.table}' "
                f"but does not declare it in depends_on"
            )

    sorted_tables: list[str] = []
    visited: set[str] = set()
    visiting: list[str] = []  # current DFS path, for cycle reporting

    def visit(name: str) -> None:
        if name in visited:
            return
        if name in visiting:
            cycle = visiting[visiting.index(name):] + [name]
            raise CatalogCycleError(cycle)
        visiting.append(name)
        for dep in by_name[name].depends_on:
            if dep != name:  # self-references don't constrain order
                visit(dep)
        visiting.pop()
        visited.add(name)
        sorted_tables.append(name)

    for table in tables:
        visit(table.name)

    return sorted_tables


class TableCatalog:
    """Immutable, topologically ordered set of table definitions.

    Args:
        tables: Table definitions in any order.  Names must be unique.

    Raises:
        ValueError: If a table name is declared twice.
        UnknownTableError: If a dependency names an undeclared table.
        CatalogCycleError: If dependencies form a cycle.
    """

    def __init__(self, tables: Iterable[TableDef]) -> None:
        table_list = list(tables)
        names = [t.name for t in table_list]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tables in catalog: {', '.join(duplicates)}")

        self._tables: dict[str, TableDef] = {t.name: t for t in table_list}
        self._order: tuple[str, ...] = tuple(_topological_sort(table_list))
        self._positions: dict[str, int] = {n: i for i, n in enumerate(self._order)}

    @property
    def order(self) -> list[str]:
        """Table names in import order (parents first)."""
        return list(self._order)

    @property
    def export_order(self) -> list[str]:
        """Names of exported tables, in catalog order."""
        return [n for n in self._order if self._tables[n].exported]

    def get(self, name: str) -> TableDef:
        """Return the definition of *name*.

        Raises:
            UnknownTableError: If *name* is not in the catalog.
        """
        try:
            return self._tables[name]
        except KeyError:
            raise UnknownTableError(f"Table '{name}' is not in the catalog") from None

    def position(self, name: str) -> int:
        """Index of *name* in import order."""
        self.get(name)
        return self._positions[name]

    def __iter__(self) -> Iterator[TableDef]:
        return (self._tables[n] for n in self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __repr__(self) -> str:
        return f"TableCatalog({len(self)} tables)"


# ============================================================================
# Default catalog for the business dashboard schema
# ============================================================================

_RATING_REF = ForeignKey(table="employee_ratings", field="rating_id")

DEFAULT_TABLES: list[TableDef] = [
    # Users
    TableDef(name="profiles"),
    TableDef(name="user_roles", depends_on=["profiles"]),
    # Skill hierarchy
    TableDef(name="skill_categories"),
    TableDef(name="skills", depends_on=["skill_categories"]),
    TableDef(name="subskills", depends_on=["skills"]),
    # Ratings
    TableDef(name="employee_ratings", depends_on=["profiles", "skills", "subskills"]),
    TableDef(name="user_skills", depends_on=["profiles", "skills"]),
    TableDef(name="skill_rating_history", depends_on=["profiles", "skills"]),
    TableDef(name="subskill_rating_history", depends_on=["profiles", "subskills"]),
    # Goals
    TableDef(name="personal_goals", depends_on=["profiles", "skills"]),
    TableDef(name="goal_progress_history", depends_on=["personal_goals"]),
    # Gamification
    TableDef(name="user_gamification", depends_on=["profiles"]),
    TableDef(name="user_achievements", depends_on=["profiles"]),
    TableDef(name="leaderboard_history", depends_on=["profiles"]),
    # Projects
    TableDef(name="projects", depends_on=["profiles"]),
    TableDef(name="project_assignments", depends_on=["projects", "profiles"]),
    # Training
    TableDef(name="training_budgets", depends_on=["profiles", "skill_categories"]),
    TableDef(name="training_participation", depends_on=["profiles", "training_budgets"]),
    # Notifications and preferences
    TableDef(name="notifications", depends_on=["profiles"]),
    TableDef(name="user_category_preferences", depends_on=["profiles", "skill_categories"]),
    TableDef(name="skill_explorer_presets", depends_on=["profiles"]),
    # Logs
    TableDef(name="report_logs", depends_on=["profiles"]),
    TableDef(name="import_export_logs", depends_on=["profiles"]),
    TableDef(name="activity_log", depends_on=["profiles"]),
    # Approvals (after every rating table)
    TableDef(name="approval_history", depends_on=["employee_ratings", "profiles"]),
    TableDef(
        name="approval_logs",
        depends_on=["employee_ratings", "profiles"],
        integrity_ref=_RATING_REF,
    ),
    TableDef(
        name="approval_audit_logs",
        depends_on=["employee_ratings", "profiles"],
        integrity_ref=_RATING_REF,
    ),
    # Snapshot metadata is restored but never exported into a snapshot
    TableDef(name="backup_history", depends_on=["profiles"], exported=False),
    # Page access
    TableDef(name="pages"),
    TableDef(name="page_access", depends_on=["pages"]),
]

DEFAULT_CATALOG = TableCatalog(DEFAULT_TABLES)
