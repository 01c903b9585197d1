"""Browsing goals sent to the automation backend, one per registry task."""

PROFILE_GOAL = """\
Visit this website and extract company information.

Explore the site to find the About page, the homepage, or company info.

Extract the company name, a one-sentence description of what they do, the
industry, headquarters location, regions they operate in, products or
services offered, supported languages, target customers and key value
propositions.

Return ONLY valid JSON:
{
  "company_name": "",
  "description": "",
  "industry": "",
  "hq_location": "",
  "regions": [],
  "products": [],
  "languages": [],
  "target_customers": [],
  "value_propositions": []
}
"""

PRICING_GOAL = """\
Visit this website and find their pricing page.

Look for links containing: pricing, plans, price, cost, buy, subscribe, or
similar. Check the navigation menu and footer links.

Once you find pricing, extract ALL pricing information.

Return ONLY valid JSON:
{
  "company": "",
  "product": "",
  "currency": "",
  "pricing_model": "",
  "pricing_page_url": "",
  "free_trial": {"available": false, "duration": ""},
  "plans": [
    {
      "name": "",
      "monthly_price_per_user": "",
      "annual_price_per_user": "",
      "features": [],
      "storage": "",
      "limits": ""
    }
  ],
  "enterprise_option": false,
  "promotions": []
}

If no pricing page is found, return:
{"company": "", "error": "No public pricing page found", "pricing_model": "Contact sales or custom pricing"}
"""

HIRING_GOAL = """\
Visit this website and find their careers or jobs page.

Look for links containing: careers, jobs, hiring, work with us, join us, open
positions, or similar. Check the navigation menu, footer links, or common
paths like /careers and /jobs. Also check external job boards such as
lever.co, greenhouse.io or ashbyhq.com.

Extract the job listings.

Return ONLY valid JSON:
{
  "company": "",
  "careers_page_url": "",
  "total_openings": 0,
  "jobs": [
    {"title": "", "department": "", "location": "", "seniority": "", "remote": false}
  ],
  "analysis": {
    "top_departments": [],
    "top_locations": [],
    "remote_available": false,
    "key_skills_in_demand": [],
    "strategic_signals": []
  }
}

If no careers page is found, return:
{"company": "", "error": "No public careers page found", "total_openings": "Unknown"}
"""

CONTENT_GOAL = """\
Visit this website and find their blog, news, updates, or content page.

Look for links containing: blog, news, updates, changelog, resources,
articles, insights, or similar. Check the navigation menu, footer links, or
common paths.

Extract the latest posts.

Return ONLY valid JSON:
{
  "company": "",
  "platform": "Blog",
  "content_page_url": "",
  "posts": [
    {"title": "", "date": "", "category": "", "summary": "", "products_mentioned": [], "themes": []}
  ],
  "analysis": {
    "dominant_topics": [],
    "product_launches": [],
    "narrative_strategy": "",
    "target_audience": "",
    "competitive_mentions": []
  }
}

If no blog is found, return:
{"company": "", "error": "No public blog or news page found"}
"""

REVIEWS_GOAL = """\
You are on G2 search results. Find the company's product page and open it.

Extract all visible review data. Do not navigate away unnecessarily.

Return ONLY valid JSON:
{
  "company": "",
  "product": "",
  "review_platform": "G2",
  "overall_rating": 0,
  "total_reviews": 0,
  "reviews": [
    {
      "rating": 0,
      "title": "",
      "pros": [],
      "cons": [],
      "reviewer_industry": "",
      "reviewer_company_size": "",
      "date": ""
    }
  ],
  "analysis": {
    "top_strengths": [],
    "top_weaknesses": [],
    "feature_requests": [],
    "sentiment_trend": "",
    "reviewer_profile": ""
  }
}

If reviews are not accessible, return:
{"company": "", "error": "Could not access reviews", "review_platform": "G2"}
"""

TECH_STACK_GOAL = """\
Visit this website and analyze the technologies it uses.

Check page source, scripts, meta tags, cookies and network requests for
JavaScript frameworks, analytics and tracking tools, advertising pixels, chat
or support widgets, payment processors, CDN indicators, font services and
marketing tools.

Return ONLY valid JSON:
{
  "company": "",
  "url": "",
  "tech_stack": {
    "frontend_framework": "",
    "analytics": [],
    "advertising": [],
    "customer_support": [],
    "cdn": "",
    "fonts": [],
    "marketing_tools": [],
    "other_technologies": []
  }
}
"""
