# models包初始化文件
# 导入全部模型，确保建表时所有表都已注册到 Base.metadata

from dealerflow.models.user import User
from dealerflow.models.entity import Entity
from dealerflow.models.vehicle import VehicleVariant, VehicleColor
from dealerflow.models.quote import Quote, QuoteItem
from dealerflow.models.sales_order import SalesOrder
from dealerflow.models.order_item import OrderItem
from dealerflow.models.order_flow import OrderFlow
from dealerflow.models.stock import Stock, StockFlow
from dealerflow.models.delivery import Delivery
from dealerflow.models.payment import Payment
from dealerflow.models.vehicle_request import VehicleRequest, VehicleRequestItem, RequestFlow
from dealerflow.models.audit_log import AuditLog
from dealerflow.models.sequence import DocumentSequence

__all__ = [
    "User",
    "Entity",
    "VehicleVariant",
    "VehicleColor",
    "Quote",
    "QuoteItem",
    "SalesOrder",
    "OrderItem",
    "OrderFlow",
    "Stock",
    "StockFlow",
    "Delivery",
    "Payment",
    "VehicleRequest",
    "VehicleRequestItem",
    "RequestFlow",
    "AuditLog",
    "DocumentSequence",
]
