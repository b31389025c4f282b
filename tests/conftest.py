import pytest

from tagscope.config.settings import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        retry_base_delay_ms=0,
        retry_max_delay_ms=0,
        crawl_delay_ms=0,
        batch_delay_ms=0,
        render_settle_ms=0,
        escalation_hosts=[],
    )


@pytest.fixture
def tealium_html() -> str:
    return """
    <html>
    <head>
        <title>Example Store</title>
        <script src="https://tags.example-cdn.test/utag/acct1/profileA/prod/utag.js"></script>
    </head>
    <body>
        <a href="/about">About</a>
        <a href="/contact">Contact</a>
    </body>
    </html>
    """


@pytest.fixture
def gtm_html() -> str:
    return """
    <html>
    <head>
        <title>GTM Site</title>
        <script>(function(w,d,s,l,i){w[l]=w[l]||[];w[l].push({'gtm.start':
        new Date().getTime(),event:'gtm.js'});var f=d.getElementsByTagName(s)[0],
        j=d.createElement(s),dl=l!='dataLayer'?'&l='+l:'';j.async=true;j.src=
        'https://www.googletagmanager.com/gtm.js?id='+i+dl;f.parentNode.insertBefore(j,f);
        })(window,document,'script','dataLayer','GTM-ABC1234');</script>
    </head>
    <body>
        <noscript><iframe src="https://www.googletagmanager.com/ns.html?id=GTM-ABC1234"
        height="0" width="0" style="display:none;visibility:hidden"></iframe></noscript>
    </body>
    </html>
    """


@pytest.fixture
def dual_managed_html() -> str:
    return """
    <html>
    <head>
        <title>Migrating Site</title>
        <script async src="//tags.tiqcdn.com/utag/shop/main/prod/utag.js"></script>
        <script async src="https://www.googletagmanager.com/gtm.js?id=GTM-XYZ9876"></script>
        <script async src="https://www.googletagmanager.com/gtag/js?id=G-ABCDE12345"></script>
        <script>
            window.dataLayer = window.dataLayer || [];
            function gtag(){dataLayer.push(arguments);}
            gtag('js', new Date());
            gtag('config', 'G-ABCDE12345');
        </script>
    </head>
    <body><p>Hello</p></body>
    </html>
    """


@pytest.fixture
def direct_tags_html() -> str:
    return """
    <html>
    <head>
        <script>
            !function(f,b,e,v,n,t,s){n=f.fbq=function(){};t=b.createElement(e);t.async=!0;
            t.src=v;s=b.getElementsByTagName(e)[0];s.parentNode.insertBefore(t,s)}
            (window,document,'script','https://connect.facebook.net/en_US/fbevents.js');
            fbq('init', '123456789012345');
        </script>
        <script type="text/javascript">
            _linkedin_partner_id = "1234567";
        </script>
        <script defer src="https://snap.licdn.com/li.lms-analytics/insight.min.js"></script>
    </head>
    <body>
        <noscript><img height="1" width="1" src="https://www.facebook.com/tr?id=123456789012345&ev=PageView&noscript=1"/></noscript>
    </body>
    </html>
    """


@pytest.fixture
def plain_html() -> str:
    return "<html><head><title>Plain</title></head><body><p>No tags here.</p></body></html>"


@pytest.fixture
def script_heavy_html() -> str:
    scripts = "\n".join(f'<script src="/static/bundle-{i}.js"></script>' for i in range(20))
    return f"<html><head><title>App</title>{scripts}</head><body><div id='root'></div></body></html>"


@pytest.fixture
def homepage_with_links_html() -> str:
    links = "\n".join(f'<a href="/page-{i}">Page {i}</a>' for i in range(1, 11))
    return f"""
    <html>
    <head><title>Home</title></head>
    <body>
        <nav>{links}</nav>
        <a href="https://other-site.test/elsewhere">External</a>
        <a href="/admin/settings">Admin</a>
        <a href="/search?q=tags">Search</a>
        <a href="#top">Top</a>
    </body>
    </html>
    """
