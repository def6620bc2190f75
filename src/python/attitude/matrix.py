"""
===============================================================================
ATTITUDE KERNEL - Structural 3x3 Matrix Interface
===============================================================================

The quaternion kernel never depends on a particular linear-algebra library.
Conversion routines only ever touch a matrix through two-index item access:

    value = m[row, col]          # read  (Quaternion.from_matrix)
    m[row, col] = value          # write (Quaternion.to_matrix)

numpy arrays, numpy matrices, torch/jax tensors and most other array types
already satisfy this. Row-major nested sequences (lists of lists, tuples of
tuples) index as m[row][col] instead, so NestedMatrix adapts them.
===============================================================================
"""

from typing import List, Optional, Protocol, Sequence, Tuple


class MatrixLike(Protocol):
    """Anything readable as m[row, col] for row, col in [0, 2]."""

    def __getitem__(self, index: Tuple[int, int]) -> float:
        ...


class MutableMatrixLike(MatrixLike, Protocol):
    """Anything readable and writable as m[row, col]."""

    def __setitem__(self, index: Tuple[int, int], value: float) -> None:
        ...


class NestedMatrix:
    """
    Adapter exposing a row-major nested sequence through (row, col) indexing.

    Reads and writes go straight through to the wrapped rows, so wrapping a
    caller-owned list of lists and passing it to Quaternion.to_matrix fills
    that list in place.

    Parameters
    ----------
    rows : sequence of sequences, optional
        Row-major 3x3 storage. Defaults to a fresh 3x3 list of zeros.

    Examples
    --------
    >>> m = NestedMatrix([[0, 1, 0], [1, 0, 0], [0, 0, -1]])
    >>> m[0, 1]
    1
    """

    SIZE = 3

    def __init__(self, rows: Optional[Sequence[Sequence[float]]] = None) -> None:
        if rows is None:
            rows = [[0.0] * self.SIZE for _ in range(self.SIZE)]
        if len(rows) != self.SIZE or any(len(r) != self.SIZE for r in rows):
            raise ValueError(
                f"NestedMatrix requires {self.SIZE}x{self.SIZE} rows, got "
                f"{[len(r) for r in rows]}"
            )
        self.rows = rows

    def __getitem__(self, index: Tuple[int, int]) -> float:
        row, col = index
        return self.rows[row][col]

    def __setitem__(self, index: Tuple[int, int], value: float) -> None:
        row, col = index
        self.rows[row][col] = value

    def tolist(self) -> List[List[float]]:
        """Return the contents as a new list of lists."""
        return [list(r) for r in self.rows]

    def __repr__(self) -> str:
        return f"NestedMatrix({self.tolist()!r})"
