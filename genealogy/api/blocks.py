"""
The caller's home-page blocks: `/api/blocks/`.

- list, PATCH (`location`, `block_order`), DELETE on single blocks.
- `POST reorder/` sets the whole layout at once: `{"main": [ids], "side": [ids]}`.
- `POST reset/` drops the caller's blocks and copies the site defaults again.
"""

from __future__ import annotations

from django.db import transaction
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from genealogy.models import Block
from genealogy.schema import VALIDATION_ERROR_RESPONSE
from genealogy.serializers import BlockReorderSerializer, BlockSerializer
from genealogy.signals import copy_default_blocks


@extend_schema_view(
    list=extend_schema(tags=["Blocks"], description="Your home-page blocks in display order."),
    partial_update=extend_schema(tags=["Blocks"], description="Move one block."),
    update=extend_schema(tags=["Blocks"], description="Move one block."),
    destroy=extend_schema(tags=["Blocks"], description="Remove one block."),
)
class BlockViewSet(
    mixins.ListModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    serializer_class = BlockSerializer
    queryset = Block.objects.all()
    lookup_value_regex = r"\d+"
    pagination_class = None

    def get_queryset(self):
        # SECURITY: only the caller's own user blocks (not tree or default blocks).
        user = getattr(self.request, "user", None)
        if not user or not user.is_authenticated:
            return Block.objects.none()
        return super().get_queryset().filter(user=user, tree__isnull=True)

    @extend_schema(
        tags=["Blocks"],
        request=BlockReorderSerializer,
        responses={200: BlockSerializer(many=True), 400: VALIDATION_ERROR_RESPONSE},
        description="Set the location and order of your blocks. Unlisted blocks keep their place.",
    )
    @action(detail=False, methods=["post"])
    def reorder(self, request):
        serializer = BlockReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blocks = {block.pk: block for block in self.get_queryset()}

        layout = list(serializer.layout())
        unknown = sorted(block_id for block_id, _, _ in layout if block_id not in blocks)
        if unknown:
            raise ValidationError({"detail": f"Unknown block ids: {unknown}"})

        with transaction.atomic():
            for block_id, location, order in layout:
                block = blocks[block_id]
                block.location = location
                block.block_order = order
            Block.objects.bulk_update([blocks[i] for i, _, _ in layout], ["location", "block_order"])
        return Response(BlockSerializer(self.get_queryset(), many=True).data)

    @extend_schema(
        tags=["Blocks"],
        request=None,
        responses={200: BlockSerializer(many=True)},
        description="Replace your blocks with the site defaults.",
    )
    @action(detail=False, methods=["post"])
    def reset(self, request):
        with transaction.atomic():
            self.get_queryset().delete()
            copy_default_blocks(request.user)
        return Response(BlockSerializer(self.get_queryset(), many=True).data)
