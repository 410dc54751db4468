import uuid

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_user, get_tenant, require_admin
from app.exceptions import InvalidStateError
from app.models.catalog import Customer, Project
from app.models.user import User
from app.schemas.catalog import CustomerCreate, CustomerUpdate, CustomerResponse
from app.services.audit import log_action
from app.services.tenant import TenantScope

router = APIRouter(prefix="/api/customers", tags=["Customers"])


@router.get("/", response_model=list[CustomerResponse])
def list_customers(
    include_inactive: bool = Query(False),
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    q = scope.customers()
    if not include_inactive:
        q = q.filter(Customer.active.is_(True))
    return q.order_by(Customer.name).all()


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(
    customer_id: uuid.UUID,
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return scope.get_customer_or_404(customer_id)


@router.post("/", response_model=CustomerResponse, status_code=201)
def create_customer(
    body: CustomerCreate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    customer = Customer(company_id=scope.company_id, **body.model_dump())
    scope.db.add(customer)
    scope.db.flush()
    log_action(scope.db, scope.company_id, user.user_id, "CREATE", "Customer", customer.id,
               new_value={"name": customer.name})
    scope.db.commit()
    scope.db.refresh(customer)
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: uuid.UUID,
    body: CustomerUpdate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    customer = scope.get_customer_or_404(customer_id)
    data = body.model_dump(exclude_unset=True)
    old = {key: getattr(customer, key) for key in data}
    for key, value in data.items():
        if value is None and key in ("name", "active"):
            continue
        setattr(customer, key, value)

    log_action(scope.db, scope.company_id, user.user_id, "UPDATE", "Customer", customer.id,
               old_value=old, new_value=data)
    scope.db.commit()
    scope.db.refresh(customer)
    return customer


@router.delete("/{customer_id}")
def deactivate_customer(
    customer_id: uuid.UUID,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    customer = scope.get_customer_or_404(customer_id)
    open_projects = scope.projects().filter(Project.customer_id == customer.id, Project.active.is_(True)).count()
    if open_projects:
        raise InvalidStateError(f"Customer has {open_projects} active project(s); deactivate them first")

    customer.active = False
    log_action(scope.db, scope.company_id, user.user_id, "DELETE", "Customer", customer.id,
               old_value={"name": customer.name})
    scope.db.commit()
    return {"ok": True, "message": "Customer deactivated"}
