from dataclasses import dataclass
from enum import Enum
from typing import Union


class AccountKind(str, Enum):
    assets = "assets"
    liabilities = "liabilities"
    income = "income"
    expenses = "expenses"
    other = "other"

    @classmethod
    def from_root(cls, root: str) -> "AccountKind":
        try:
            return cls(root.lower())
        except ValueError:
            return cls.other


@dataclass(frozen=True)
class ClassifiedAccount:
    """An account path split once into its kind, category and segments.

    ``root`` keeps the raw first segment so ``AccountKind.other`` accounts
    still know what they were called.
    """

    name: str
    kind: AccountKind
    root: str
    category: str
    segments: tuple[str, ...]

    def __str__(self) -> str:
        return self.name


def classify(path: str) -> ClassifiedAccount:
    segments = tuple(path.split(":"))
    root = segments[0]
    category = segments[1] if len(segments) >= 2 else path
    return ClassifiedAccount(
        name=path,
        kind=AccountKind.from_root(root),
        root=root,
        category=category,
        segments=segments,
    )


def extract_subcategory(account: Union[str, ClassifiedAccount], depth: int) -> str:
    """Name of the account truncated to ``depth`` levels below its category.

    Expense paths drop the ``expenses`` root, so depth 0 is just the
    category. Every other kind keeps its root, so depth 0 is
    ``kind:category``. Depths past the end of the path clamp silently.
    """
    if isinstance(account, str):
        account = classify(account)
    depth = max(depth, 0)
    segments = account.segments
    if account.kind is AccountKind.expenses:
        picked = segments[1 : 2 + depth]
    else:
        picked = segments[: 2 + depth]
    if not picked:
        return account.name
    return ":".join(picked)
