"""kitchenmatrix - 多平台 × 多套件的 cookbook 矩阵测试编排"""

__version__ = "0.1.0"
