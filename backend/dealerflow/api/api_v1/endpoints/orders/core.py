"""
订单核心功能模块
- 响应构建
- 列表查询的数据隔离
"""

from dealerflow.core.permissions import is_dealer_role
from dealerflow.models.sales_order import SalesOrder
from dealerflow.schemas.order import OrderResponse, OrderItemResponse, OrderFlowResponse


def build_order_response(order: SalesOrder) -> OrderResponse:
    """构建订单响应"""
    return OrderResponse(
        id=order.id,
        order_no=order.order_no,
        customer_id=order.customer_id,
        customer_name=order.customer.name if order.customer else "",
        dealer_id=order.dealer_id,
        dealer_name=order.dealer.name if order.dealer else "",
        sales_id=order.sales_id,
        quote_id=order.quote_id,
        total_amount=float(order.total_amount or 0),
        deposit=float(order.deposit or 0),
        payment_method=order.payment_method,
        status=order.status,
        status_display=order.status_display,
        expected_delivery=order.expected_delivery,
        rejection_reason=order.rejection_reason,
        notes=order.notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
        confirmed_at=order.confirmed_at,
        allocated_at=order.allocated_at,
        invoiced_at=order.invoiced_at,
        delivered_at=order.delivered_at,
        closed_at=order.closed_at,
        delivery_id=order.delivery.id if order.delivery else None,
        delivery_status=order.delivery.status if order.delivery else None,
        items=[
            OrderItemResponse(
                id=item.id,
                order_id=item.order_id,
                variant_id=item.variant_id,
                color_id=item.color_id,
                quantity=item.quantity,
                unit_price=float(item.unit_price or 0),
                amount=float(item.amount or 0),
                variant_name=item.variant.display_name if item.variant else "",
                color_name=item.color.name if item.color else "")
            for item in order.items
        ],
        flows=[
            OrderFlowResponse(
                id=flow.id,
                order_id=flow.order_id,
                action=flow.action,
                action_display=flow.action_display,
                from_status=flow.from_status,
                to_status=flow.to_status,
                meta_data=flow.meta_data,
                notes=flow.notes,
                operator_id=flow.operator_id,
                operated_at=flow.operated_at)
            for flow in order.flows
        ]
    )


def scope_order_query(query, user):
    """经销商侧用户只能看到本经销商的订单"""
    if is_dealer_role(user.role):
        query = query.where(SalesOrder.dealer_id == user.dealer_id)
    return query
