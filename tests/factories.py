from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from proserv.chat.models import Chat
from proserv.chat.models import ChatParticipant
from proserv.payments.models import Payment
from proserv.payments.services import breakdown
from proserv.professionals.models import Professional
from proserv.professionals.models import ServiceCategory
from proserv.professionals.models import ServiceOffering
from proserv.quotes.models import Quote
from proserv.reviews.models import Review
from proserv.service_requests.models import ServiceRequest

User = get_user_model()

TEST_PASSWORD = "password"  # noqa: S105


def create_user(
    username: str,
    *,
    role: str = User.Role.CLIENT,
    password: str = TEST_PASSWORD,
    **extra,
):
    extra.setdefault("first_name", username.title())
    extra.setdefault("email", f"{username}@example.com")
    return User.objects.create_user(
        username=username,
        password=password,
        role=role,
        **extra,
    )


def create_admin(username: str = "admin"):
    return create_user(username, role=User.Role.ADMIN)


def create_professional(
    username: str,
    *,
    verified: bool = True,
    categories=(ServiceCategory.CLEANING,),
    **profile,
) -> Professional:
    """A professional account; the profile row comes from the user signal."""
    user = create_user(username, role=User.Role.PROFESSIONAL)
    profile.setdefault("business_name", f"{username.title()} Services")
    profile.setdefault("city", "Bogota")
    profile["verification_status"] = (
        Professional.VerificationStatus.VERIFIED
        if verified
        else Professional.VerificationStatus.PENDING
    )
    Professional.objects.filter(user=user).update(**profile)
    professional = Professional.objects.get(user=user)
    for category in categories:
        ServiceOffering.objects.create(
            professional=professional,
            category=category,
            title=f"{category} by {username}",
            pricing_type=ServiceOffering.PricingType.FIXED,
            amount=Decimal("80000.00"),
        )
    return professional


def create_service_request(
    client,
    *,
    professional: Professional | None = None,
    status: str = ServiceRequest.Status.PENDING,
    **extra,
) -> ServiceRequest:
    extra.setdefault("category", ServiceCategory.CLEANING)
    extra.setdefault("title", "Deep clean of a two bedroom flat")
    extra.setdefault("description", "Kitchen, two bedrooms and a bathroom.")
    extra.setdefault("address_street", "Calle 100 # 15-20")
    extra.setdefault("address_city", "Bogota")
    extra.setdefault("preferred_date", timezone.localdate() + timedelta(days=3))
    extra.setdefault("preferred_time", "10:00")
    return ServiceRequest.objects.create(
        client=client,
        assigned_professional=professional,
        status=status,
        **extra,
    )


def create_quote(
    service_request: ServiceRequest,
    professional: Professional,
    **extra,
) -> Quote:
    extra.setdefault("price", Decimal("100000.00"))
    extra.setdefault("description", "Two cleaners for four hours, supplies included.")
    return Quote.objects.create(
        service_request=service_request,
        professional=professional,
        **extra,
    )


def create_accepted_request(client, professional: Professional, **extra):
    """A request with an assigned professional and an agreed price."""
    extra.setdefault("quoted_cost", Decimal("100000.00"))
    return create_service_request(
        client,
        professional=professional,
        status=extra.pop("status", ServiceRequest.Status.ACCEPTED),
        **extra,
    )


def create_chat(service_request: ServiceRequest) -> Chat:
    chat = Chat.objects.create(
        service_request=service_request,
        created_by=service_request.client,
    )
    ChatParticipant.objects.create(
        chat=chat,
        user=service_request.client,
        role=ChatParticipant.Role.CLIENT,
    )
    if service_request.assigned_professional is not None:
        ChatParticipant.objects.create(
            chat=chat,
            user=service_request.assigned_professional.user,
            role=ChatParticipant.Role.PROFESSIONAL,
        )
    return chat


def create_payment(
    service_request: ServiceRequest,
    *,
    status: str = Payment.Status.COMPLETED,
    amount: Decimal = Decimal("100000.00"),
    **extra,
) -> Payment:
    """A payment row; a completed one also marks the request as paid."""
    extra.setdefault("method", "card")
    if status == Payment.Status.COMPLETED:
        service_request.payment_status = ServiceRequest.PaymentStatus.PAID
        service_request.save(update_fields=["payment_status", "updated_at"])
    return Payment.objects.create(
        service_request=service_request,
        client=service_request.client,
        professional=service_request.assigned_professional,
        status=status,
        transaction_id="sim_test",
        paid_at=timezone.now() if status == Payment.Status.COMPLETED else None,
        **breakdown(amount),
        **extra,
    )


def create_review(
    service_request: ServiceRequest,
    *,
    rating: int = 5,
    **extra,
) -> Review:
    """A client review of the assigned professional."""
    return Review.objects.create(
        service_request=service_request,
        reviewer=service_request.client,
        reviewee=service_request.assigned_professional.user,
        reviewer_type=Review.ReviewerType.CLIENT,
        rating=rating,
        **extra,
    )
