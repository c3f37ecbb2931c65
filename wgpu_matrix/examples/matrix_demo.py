#!/usr/bin/env python3
"""
Matrix operations demo for wgpu_matrix.

Builds small matrices, runs every GPU operation and checks each result
against numpy.

Usage:
    python -m wgpu_matrix.examples.matrix_demo
    # or
    python wgpu_matrix/examples/matrix_demo.py
"""

import logging
import sys
import os
import numpy as np

# Allow running from repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from wgpu_matrix import (
    Matrix, WgpuContext,
    matrix_multiply, matrix_add, matrix_subtract,
    matrix_transpose, matrix_scalar_multiply,
    vector_dot_product, vector_add,
)


def print_matrix(label, matrix):
    print(f"{label} ({matrix.rows}x{matrix.cols}):")
    for i in range(matrix.rows):
        print("  " + " ".join(f"{matrix.get(i, j):6.1f}" for j in range(matrix.cols)))
    print()


def build_matrices(m=4, k=3, n=2):
    """A (m x k), B (k x n) and C (m x k) filled with index patterns."""
    a = Matrix(m, k)
    for i in range(m):
        for j in range(k):
            a.set(i, j, i * k + j)

    b = Matrix(k, n)
    for i in range(k):
        for j in range(n):
            b.set(i, j, i * n + j)

    c = Matrix(m, k)
    for i in range(m):
        for j in range(k):
            c.set(i, j, i + j)
    return a, b, c


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("wgpu_matrix Demo")
    print("=" * 50)

    with WgpuContext() as ctx:
        print(f"Adapter: {ctx.adapter_summary}")
        print()

        a, b, c = build_matrices()
        print_matrix("A", a)
        print_matrix("B", b)
        print_matrix("C", c)

        product = matrix_multiply(ctx, a, b)
        print_matrix("A * B", product)
        assert np.allclose(product.to_numpy(), a.to_numpy() @ b.to_numpy())

        total = matrix_add(ctx, a, c)
        print_matrix("A + C", total)

        diff = matrix_subtract(ctx, a, c)
        print_matrix("A - C", diff)

        transposed = matrix_transpose(ctx, a)
        print_matrix("A^T", transposed)

        scaled = matrix_scalar_multiply(ctx, 2.5, a)
        print_matrix("2.5 * A", scaled)

        x = Matrix.vector([1.0, 2.0, 3.0, 4.0, 5.0])
        y = Matrix.vector([5.0, 4.0, 3.0, 2.0, 1.0])
        dot = vector_dot_product(ctx, x, y)
        print(f"dot(x, y) = {dot} (expected: {x.dot_cpu(y)})")

        summed = vector_add(ctx, np.arange(1024), np.arange(1024) * 2)
        print(f"vector_add[:5] = {summed[:5]}")

    print()
    print("All operations completed.")


if __name__ == "__main__":
    main()
