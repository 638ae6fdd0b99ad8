"""FastAPI dependency injection."""

from fastapi import Depends

from src.data.matrix_loader import RateMatrixLoader
from src.data.rates_client import RatesClient


def get_rates_client() -> RatesClient:
    return RatesClient()


def get_matrix_loader(client: RatesClient = Depends(get_rates_client)) -> RateMatrixLoader:
    return RateMatrixLoader(client)
