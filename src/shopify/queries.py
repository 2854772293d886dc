"""GraphQL documents for the Storefront, Customer Account and Admin APIs."""

# ---------------------------------------------------------------------------
# Storefront API: catalog
# ---------------------------------------------------------------------------

COLLECTIONS_QUERY = """
query Collections($first: Int!) {
  collections(first: $first) {
    edges {
      node {
        id
        title
        handle
        description
        descriptionHtml
        image { url altText }
      }
    }
  }
}
"""

COLLECTION_BY_HANDLE_QUERY = """
query CollectionByHandle($handle: String!, $first: Int!) {
  collectionByHandle(handle: $handle) {
    id
    title
    handle
    description
    descriptionHtml
    products(first: $first) {
      edges {
        node {
          id
          title
          handle
          vendor
          productType
          description
          descriptionHtml
          featuredImage { url altText }
          images(first: 6) { edges { node { url altText } } }
          variants(first: 20) {
            edges {
              node {
                id
                title
                availableForSale
                quantityAvailable
                price { amount currencyCode }
                compareAtPrice { amount currencyCode }
                sku
              }
            }
          }
        }
      }
    }
  }
}
"""

# ---------------------------------------------------------------------------
# Storefront API: cart
# ---------------------------------------------------------------------------

CART_CREATE_MUTATION = """
mutation CartCreate($input: CartInput) {
  cartCreate(input: $input) {
    cart { id }
    userErrors { message }
  }
}
"""

CART_QUERY = """
query CartQuery($id: ID!) {
  cart(id: $id) {
    id
    checkoutUrl
    totalQuantity
    cost {
      subtotalAmount { amount currencyCode }
      totalAmount { amount currencyCode }
      totalTaxAmount { amount currencyCode }
    }
    lines(first: 50) {
      edges {
        node {
          id
          quantity
          merchandise {
            ... on ProductVariant {
              id
              title
              sku
              product { title handle featuredImage { url altText } }
              price { amount currencyCode }
            }
          }
        }
      }
    }
  }
}
"""

CART_LINES_ADD_MUTATION = """
mutation CartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!) {
  cartLinesAdd(cartId: $cartId, lines: $lines) {
    cart { id }
    userErrors { message }
  }
}
"""

CART_LINES_UPDATE_MUTATION = """
mutation CartLinesUpdate($cartId: ID!, $lines: [CartLineUpdateInput!]!) {
  cartLinesUpdate(cartId: $cartId, lines: $lines) {
    cart { id }
    userErrors { message }
  }
}
"""

CART_LINES_REMOVE_MUTATION = """
mutation CartLinesRemove($cartId: ID!, $lineIds: [ID!]!) {
  cartLinesRemove(cartId: $cartId, lineIds: $lineIds) {
    cart { id }
    userErrors { message }
  }
}
"""

# ---------------------------------------------------------------------------
# Customer Account API
# ---------------------------------------------------------------------------

CUSTOMER_PROFILE_QUERY = """
query {
  customer {
    firstName
    lastName
    emailAddress { emailAddress }
    tags
  }
}
"""

CUSTOMER_ORDERS_QUERY = """
query Orders($first: Int!) {
  customer {
    orders(first: $first, sortKey: PROCESSED_AT, reverse: true) {
      nodes {
        id
        name
        number
        createdAt
        financialStatus
        fulfillmentStatus
        subtotal { amount currencyCode }
        totalTax { amount currencyCode }
        totalPrice { amount currencyCode }
        lineItems(first: 50) {
          nodes {
            id
            name
            quantity
            sku
            variantId
            image { url altText }
          }
        }
      }
    }
  }
}
"""

# ---------------------------------------------------------------------------
# Admin API (proxy service)
# ---------------------------------------------------------------------------

SEARCH_CUSTOMERS_QUERY = """
query SearchCustomers($query: String!) {
  customers(first: 1, query: $query) {
    edges {
      node {
        id
        email
        firstName
        lastName
      }
    }
  }
}
"""

CREATE_CUSTOMER_MUTATION = """
mutation CreateCustomer($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer {
      id
      email
    }
    userErrors {
      field
      message
    }
  }
}
"""

SET_METAFIELDS_MUTATION = """
mutation SetMetafields($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields {
      id
      key
      value
    }
    userErrors {
      field
      message
    }
  }
}
"""

TAGS_ADD_MUTATION = """
mutation AddTag($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    userErrors {
      field
      message
    }
  }
}
"""

SEND_INVITE_MUTATION = """
mutation SendInvite($customerId: ID!) {
  customerSendAccountInviteEmail(customerId: $customerId) {
    customer {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

SEGMENTS_QUERY = """
query GetSegments($first: Int!) {
  segments(first: $first) {
    edges {
      node {
        id
        name
      }
    }
  }
}
"""

ADD_CUSTOMER_TO_SEGMENT_MUTATION = """
mutation AddCustomerToSegment($customerId: ID!, $segmentId: ID!) {
  segmentCustomersAdd(customerId: $customerId, segmentId: $segmentId) {
    userErrors {
      field
      message
    }
    customers {
      id
    }
  }
}
"""
