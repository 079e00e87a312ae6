"""GraphQL documents used against the Shopify Admin API."""

# =============================================================================
# Shop metafields
# =============================================================================

SHOP_METAFIELD_QUERY = """
query ShopMetafield($namespace: String!, $key: String!) {
  shop {
    metafield(namespace: $namespace, key: $key) {
      value
    }
  }
}
"""

SHOP_ID_QUERY = """
query ShopId {
  shop { id }
}
"""

METAFIELDS_SET_MUTATION = """
mutation SetMetafields($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id key namespace type value }
    userErrors { field message code }
  }
}
"""

# =============================================================================
# Variants
# =============================================================================

VARIANT_SEARCH_QUERY = """
query Variants($query: String!, $first: Int!, $cursor: String) {
  productVariants(first: $first, query: $query, after: $cursor) {
    nodes {
      id
      sku
      inventoryItem { id }
      product { title }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

VARIANT_BY_ID_QUERY = """
query Variant($id: ID!) {
  node(id: $id) {
    ... on ProductVariant {
      id
      sku
      inventoryItem { id }
    }
  }
}
"""

VARIANT_TITLES_QUERY = """
query VariantTitles($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant {
      id
      title
      product { title }
    }
  }
}
"""

# =============================================================================
# Inventory
# =============================================================================

INVENTORY_LEVELS_QUERY = """
query InventoryLevels($ids: [ID!]!, $locationId: ID!) {
  nodes(ids: $ids) {
    ... on InventoryItem {
      id
      inventoryLevel(locationId: $locationId) {
        quantities(names: ["available"]) {
          name
          quantity
        }
      }
    }
  }
}
"""

INVENTORY_ADJUST_MUTATION = """
mutation Adjust($input: InventoryAdjustQuantitiesInput!) {
  inventoryAdjustQuantities(input: $input) {
    inventoryAdjustmentGroup { id }
    userErrors { field message }
  }
}
"""
